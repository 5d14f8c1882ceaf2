"""
End-to-end tests through WaterVolumeManager: the properties every result must
hold, the stage bookkeeping, error wrapping and the result cache.
"""

import copy

import pytest

import water_volume_manager
from brew_errors import CalculationError, RecipeStructureError, ValidationError
from brew_math import BrewMath
from profile_data import CalculationStage, Confidence, Recipe
from settings_manager import SettingsManager
from water_volume_manager import WaterVolumeManager, fingerprint

RECIPE_FIXTURES = ["traditional_recipe", "biab_recipe", "no_boil_recipe"]


def stage_volumes(flow):
    return [
        flow.strike_water_l, flow.total_mash_water_l, flow.volume_into_kettle_l,
        flow.volume_pre_boil_l, flow.volume_post_boil_l, flow.volume_to_fermenter_l,
        flow.volume_packaging_l,
    ]


class TestResultProperties:
    @pytest.mark.parametrize("fixture_name", RECIPE_FIXTURES)
    def test_fermenter_volume_matches_batch(self, request, manager, fixture_name):
        recipe = request.getfixturevalue(fixture_name)
        result = manager.calculate(recipe)
        target = BrewMath.round_for_display(result.inputs.batch_size_l)
        assert result.flow.volume_to_fermenter_l == pytest.approx(target, abs=0.01)

    @pytest.mark.parametrize("fixture_name", RECIPE_FIXTURES)
    def test_valid_recipes_have_no_negative_volumes(self, request, manager, fixture_name):
        result = manager.calculate(request.getfixturevalue(fixture_name))
        assert result.is_valid
        assert all(v >= 0 for v in stage_volumes(result.flow))

    @pytest.mark.parametrize("fixture_name", RECIPE_FIXTURES)
    def test_repeatable(self, request, fixture_name):
        recipe = request.getfixturevalue(fixture_name)
        first = WaterVolumeManager().calculate(copy.deepcopy(recipe)).to_dict()
        second = WaterVolumeManager().calculate(copy.deepcopy(recipe)).to_dict()
        assert first == second

    def test_metric_display_units(self, traditional_recipe):
        settings = SettingsManager()
        settings.override("system_settings", "units", "metric")
        flow = WaterVolumeManager(settings).calculate(traditional_recipe).flow
        for value in stage_volumes(flow):
            assert BrewMath.round_half_up(value) == pytest.approx(value, abs=1e-9)
        assert flow.volume_to_fermenter_l == pytest.approx(19.0)

    def test_recipe_object_accepted(self, manager, traditional_recipe):
        result = manager.calculate(Recipe.from_dict(traditional_recipe))
        assert result.inputs.batch_size_l == 19.0


class TestScenarios:
    def test_declared_sparge_step_on_biab_profile(self, manager, build_recipe):
        recipe = build_recipe(
            equipment={"name": "BIAB", "boil_off_rate": 3.8},
            mash={"steps": [
                {"name": "Mash In", "type": "infusion", "infuse_amount": 15.0},
                {"name": "Sparge", "type": "sparge", "amount": 10.0},
            ]},
        )
        del recipe["type"]
        decision = manager.calculate(recipe).sparge_decision
        assert decision.uses_sparge is True
        assert decision.confidence == Confidence.HIGH
        assert decision.conflicts == ("equipment conflicts with previous decision",)

    def test_no_boil_post_boil_from_trub(self, manager, no_boil_recipe):
        result = manager.calculate(no_boil_recipe)
        assert result.evaporation.post_boil_volume_l == pytest.approx(20.0)
        assert result.evaporation.evap_loss_l == 0.0

    def test_short_boil_keeps_negative_trub(self, manager, build_recipe):
        result = manager.calculate(build_recipe(equipment={"boil_off_rate": 3.8}, boil_size=23.0))
        assert result.evaporation.post_boil_volume_l == pytest.approx(19.2)
        assert result.evaporation.trub_chiller_loss_l < 0
        assert any("back-solved" in f for f in result.flags)
        assert result.flow.volume_to_fermenter_l == pytest.approx(
            BrewMath.round_for_display(19.0), abs=0.01)


class TestStages:
    def test_status_completed(self, manager, traditional_recipe):
        assert manager.status == CalculationStage.IDLE
        manager.calculate(traditional_recipe)
        assert manager.status == CalculationStage.COMPLETED
        assert manager.last_error is None

    def test_stages_never_go_backwards(self, manager):
        manager.status = CalculationStage.VOLUME_FLOW
        with pytest.raises(CalculationError, match="cannot run after VOLUME_FLOW"):
            manager._run_stage(CalculationStage.EVAPORATION, lambda: None)


class TestErrors:
    def test_non_recipe_input(self, manager):
        with pytest.raises(ValidationError, match="must be an object"):
            manager.calculate(["not", "a", "recipe"])
        assert manager.last_error.details == {"input_type": "list"}

    def test_structural_error_propagates(self, manager, traditional_recipe):
        traditional_recipe["batch_size"] = 0
        with pytest.raises(RecipeStructureError) as excinfo:
            manager.calculate(traditional_recipe)
        assert manager.status == CalculationStage.NORMALIZING
        assert manager.last_error is excinfo.value
        assert excinfo.value.recoverable is True

    def test_unexpected_failure_wrapped(self, manager, traditional_recipe, monkeypatch):
        def broken(inputs):
            raise ZeroDivisionError("float division by zero")

        monkeypatch.setattr(water_volume_manager, "solve_evaporation", broken)
        with pytest.raises(CalculationError, match="during EVAPORATION") as excinfo:
            manager.calculate(traditional_recipe)
        assert excinfo.value.details["stage"] == "EVAPORATION"
        assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
        assert manager.last_error is excinfo.value


class TestCache:
    def _cached_manager(self):
        settings = SettingsManager()
        settings.override("system_settings", "enable_result_cache", True)
        return WaterVolumeManager(settings)

    def test_disabled_by_default(self, manager, traditional_recipe):
        first = manager.calculate(traditional_recipe)
        second = manager.calculate(traditional_recipe)
        assert first is not second
        assert manager.cache_size == 0

    def test_same_inputs_hit(self, traditional_recipe):
        manager = self._cached_manager()
        first = manager.calculate(traditional_recipe)
        assert manager.calculate(copy.deepcopy(traditional_recipe)) is first
        assert manager.cache_size == 1

    def test_same_name_different_volumes_miss(self, traditional_recipe):
        manager = self._cached_manager()
        first = manager.calculate(traditional_recipe)
        traditional_recipe["boil_size"] = 26.0
        second = manager.calculate(traditional_recipe)
        assert second is not first
        assert second.inputs.boil_size_l == 26.0
        assert manager.cache_size == 2

    def test_units_are_part_of_key(self, traditional_recipe):
        manager = self._cached_manager()
        manager.calculate(traditional_recipe)
        manager.settings.override("system_settings", "units", "metric")
        manager.calculate(traditional_recipe)
        assert manager.cache_size == 2

    def test_clear(self, traditional_recipe):
        manager = self._cached_manager()
        manager.calculate(traditional_recipe)
        manager.clear_cache()
        assert manager.cache_size == 0

    def test_fingerprint(self, normalize, traditional_recipe):
        inputs = normalize(traditional_recipe)
        assert fingerprint(inputs, "imperial") == fingerprint(inputs, "imperial")
        assert fingerprint(inputs, "imperial") != fingerprint(inputs, "metric")
        assert len(fingerprint(inputs, "metric")) == 64
