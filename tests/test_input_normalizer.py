"""Tests for recipe reading, system classification and mash step accounting."""

import pytest

from brew_errors import RecipeStructureError
from brew_math import GRAIN_ABSORPTION_ALLINONE, GRAIN_ABSORPTION_DEFAULT, BrewMath
from input_normalizer import (
    InputNormalizer,
    classify_brewing_system,
    classify_mash_steps,
    data_source_priority,
    find_explicit_sparge_volume,
    grain_absorption_rate,
)
from profile_data import (
    Confidence,
    DataSource,
    MashStep,
    Recipe,
    StepType,
    SystemType,
    WaterClassification,
)
from sparge_classifier import SpargeDecision

USES_SPARGE = SpargeDecision(True, Confidence.HIGH, "beerjson_step")
NO_SPARGE = SpargeDecision(False, Confidence.HIGH, "equipment_profile")


class TestReadRecipe:
    def test_structural_failure_raises(self, traditional_recipe):
        del traditional_recipe["batch_size"]
        with pytest.raises(RecipeStructureError, match="batch size"):
            InputNormalizer().read_recipe(Recipe.from_dict(traditional_recipe))

    def test_missing_mash_raises(self, traditional_recipe):
        del traditional_recipe["mash"]
        with pytest.raises(RecipeStructureError, match="mash"):
            InputNormalizer().read_recipe(Recipe.from_dict(traditional_recipe))

    def test_all_grain_without_grain_raises(self, traditional_recipe):
        traditional_recipe["fermentables"] = [{"name": "DME", "type": "Dry Extract", "amount": 3.0}]
        with pytest.raises(RecipeStructureError, match="must include fermentables"):
            InputNormalizer().read_recipe(Recipe.from_dict(traditional_recipe))

    def test_boil_size_estimated(self, traditional_recipe):
        del traditional_recipe["boil_size"]
        reading = InputNormalizer().read_recipe(Recipe.from_dict(traditional_recipe))
        assert reading.boil_size_l == pytest.approx(19.0 * 1.33)
        assert "Boil size not specified, estimated from batch size" in reading.warnings

    def test_boil_time_default(self, traditional_recipe):
        del traditional_recipe["boil_time"]
        reading = InputNormalizer().read_recipe(Recipe.from_dict(traditional_recipe))
        assert reading.boil_time_min == 60.0
        assert reading.is_no_boil is False

    def test_configured_defaults(self, traditional_recipe):
        del traditional_recipe["boil_time"]
        normalizer = InputNormalizer({"boil_time_min": 90.0})
        assert normalizer.read_recipe(Recipe.from_dict(traditional_recipe)).boil_time_min == 90.0

    def test_zero_boil_time_is_no_boil(self, no_boil_recipe):
        reading = InputNormalizer().read_recipe(Recipe.from_dict(no_boil_recipe))
        assert reading.is_no_boil is True

    def test_evidence(self, traditional_recipe):
        traditional_recipe["mash"]["sparge_temp"] = 76.0
        reading = InputNormalizer().read_recipe(Recipe.from_dict(traditional_recipe))
        assert reading.evidence.step_types == (StepType.INFUSION,)
        assert reading.evidence.equipment_name == "Three Vessel Home Brewery"
        assert reading.evidence.sparge_temp == 76.0
        assert reading.evidence.volume_balance.source == "volume_balance_deficit"


class TestNormalize:
    def test_traditional(self, normalize, traditional_recipe):
        inputs = normalize(traditional_recipe)
        assert inputs.system.system_type == SystemType.TRADITIONAL
        assert inputs.uses_sparge is True
        assert inputs.equipment.grain_absorption_rate_qt_lb == GRAIN_ABSORPTION_DEFAULT
        assert inputs.equipment.data_source_priority == DataSource.BOIL_OFF_RATE
        assert inputs.mash_water_data.strike_water_l == 14.0
        assert inputs.errors == ()

    def test_grain_data(self, normalize, traditional_recipe):
        traditional_recipe["fermentables"] += [
            {"name": "Table Sugar", "type": "Sugar", "amount": 1.0},
            {"name": "Untyped", "amount": 0.5},
        ]
        grain = normalize(traditional_recipe).grain_data
        lb = BrewMath.kg_to_lb(5.0)
        assert grain.total_weight_kg == pytest.approx(5.0)
        assert grain.total_weight_lb == pytest.approx(lb)
        assert grain.displacement_l == pytest.approx(BrewMath.grain_displacement_l(lb))
        assert grain.absorption_l == pytest.approx(BrewMath.grain_absorption_l(lb, GRAIN_ABSORPTION_DEFAULT))

    def test_biab(self, normalize, biab_recipe):
        inputs = normalize(biab_recipe)
        assert inputs.system.system_type == SystemType.BIAB
        assert inputs.system.is_no_sparge
        assert inputs.uses_sparge is False
        assert inputs.equipment.grain_absorption_rate_qt_lb == GRAIN_ABSORPTION_ALLINONE
        assert inputs.equipment.grain_absorption_system == "BIAB System"
        # no-sparge systems default the deadspace to 0
        assert inputs.equipment.mash_tun_deadspace_l == 0.0

    def test_biab_lauter_deadspace_ignored(self, normalize, biab_recipe):
        biab_recipe["equipment"]["lauterDeadspace"] = 1.0
        inputs = normalize(biab_recipe)
        assert inputs.equipment.lauter_deadspace_l == 0.0
        assert "Lauter deadspace not applicable for BIAB systems" in inputs.warnings

    def test_high_no_sparge_deadspace_warns(self, normalize, biab_recipe):
        biab_recipe["equipment"]["mashTunDeadspace"] = 1.5
        inputs = normalize(biab_recipe)
        assert "High mash tun deadspace for no-sparge system - consider reducing" in inputs.warnings

    def test_explicit_zero_losses_kept(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={
            "boil_off_rate": 3.8, "fermenter_loss": 0.0, "mash_tun_deadspace": 0.0,
        }))
        assert inputs.equipment.fermenter_loss_l == 0.0
        assert inputs.equipment.mash_tun_deadspace_l == 0.0

    def test_defaults_for_missing_losses(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={"boil_off_rate": 3.8}))
        assert inputs.equipment.fermenter_loss_l == 0.5
        assert inputs.equipment.mash_tun_deadspace_l == 0.5
        assert inputs.equipment.top_up_water_l == 0.0

    def test_negative_volume_clamped(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={"boil_off_rate": 3.8, "top_up_water": -2.0}))
        assert inputs.equipment.top_up_water_l == 0.0
        assert "Top-up water cannot be negative, using 0" in inputs.warnings

    def test_no_equipment_uses_defaults(self, normalize, build_recipe):
        inputs = normalize(build_recipe())
        assert inputs.equipment.data_source_priority == DataSource.DEFAULTS
        assert "No equipment data found, using defaults" in inputs.warnings

    def test_boil_off_rate_warning(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={"boil_off_rate": 10.0}))
        assert "Boil-off rate 10L/hr is unusually high (typical range: 1-8L/hr)" in inputs.warnings

    def test_no_mash_water_warning(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={"boil_off_rate": 3.8}, mash={"steps": []}))
        assert "No mash water data found in recipe" in inputs.warnings

    def test_water_grain_ratio_range(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={"boil_off_rate": 3.8},
                                        mash={"steps": [], "water_grain_ratio": 6.0}))
        assert inputs.mash_water_data.has_water_grain_ratio
        assert any("Water/grain ratio 6 qt/lb is unusually high" in w for w in inputs.warnings)
        assert "No mash water data found in recipe" not in inputs.warnings

    def test_boil_close_to_batch_warns(self, normalize, build_recipe):
        inputs = normalize(build_recipe(equipment={"boil_off_rate": 3.8}, boil_size=19.2))
        assert "Boil size and batch size are very similar - check evaporation calculations" in inputs.warnings

    def test_explicit_sparge_step_overrides(self, normalize, traditional_recipe):
        traditional_recipe["mash"]["steps"].append({"name": "Fly Sparge", "type": "sparge", "amount": 10.0})
        inputs = normalize(traditional_recipe)
        assert inputs.explicit_sparge_volume.volume_l == 10.0
        assert inputs.explicit_sparge_volume.source == "beerjson_step"
        assert inputs.mash_water_data.sparge_water_l == 10.0
        assert inputs.mash_water_data.total_mash_water_l == 24.0

    def test_to_dict_is_plain_data(self, normalize, traditional_recipe):
        data = normalize(traditional_recipe).to_dict()
        assert data["system_type"] == "traditional"
        assert data["equipment"]["data_source_priority"] == "boil_off_rate"
        assert data["mash_water_data"]["step_classifications"][0]["classification"] == "strike_water"


class TestSystemClassification:
    def test_extract_recipe(self):
        system = classify_brewing_system("BIAB", USES_SPARGE, "Extract")
        assert system.system_type == SystemType.EXTRACT
        assert system.is_no_sparge

    def test_all_in_one(self):
        system = classify_brewing_system("Brewzilla 35L", NO_SPARGE)
        assert system.system_type == SystemType.ALL_IN_ONE
        assert system.is_all_in_one

    def test_detected_no_sparge(self):
        assert classify_brewing_system("Kettle", NO_SPARGE).system_type == SystemType.NO_SPARGE

    def test_traditional(self):
        system = classify_brewing_system("Kettle", USES_SPARGE)
        assert system.system_type == SystemType.TRADITIONAL
        assert system.description == "traditional brewing system"

    @pytest.mark.parametrize("name,decision,label", [
        ("BIAB", USES_SPARGE, "BIAB System"),
        ("No Sparge Mash Tun", USES_SPARGE, "No-Sparge System"),
        ("Kettle", NO_SPARGE, "No-Sparge (detected)"),
        ("Foundry", USES_SPARGE, "All-in-One System"),
    ])
    def test_high_absorption_systems(self, name, decision, label):
        assert grain_absorption_rate(name, decision) == (GRAIN_ABSORPTION_ALLINONE, label)

    def test_traditional_absorption(self):
        assert grain_absorption_rate("Kettle", USES_SPARGE) == (GRAIN_ABSORPTION_DEFAULT, "Traditional System")


class TestDataSourcePriority:
    def test_boil_off_rate_first(self):
        assert data_source_priority(3.8, 1.0, 10.0) == DataSource.BOIL_OFF_RATE

    def test_zero_rate_falls_through_to_trub(self):
        assert data_source_priority(0.0, 1.0, 10.0) == DataSource.TRUB_LOSS

    def test_zero_trub_counts(self):
        assert data_source_priority(None, 0.0, 10.0) == DataSource.TRUB_LOSS

    def test_evap_rate(self):
        assert data_source_priority(None, None, 10.0) == DataSource.EVAP_RATE

    def test_defaults(self):
        assert data_source_priority(None, None, 0.0) == DataSource.DEFAULTS


class TestMashSteps:
    STEPS = [
        MashStep(name="Mash In", step_type=StepType.INFUSION, infuse_amount=12.0),
        MashStep(name="Mash Out", step_type=StepType.TEMPERATURE, infuse_amount=3.0),
        MashStep(name="Batch Sparge", step_type=StepType.INFUSION, infuse_amount=8.0),
        MashStep(name="Rest", step_type=StepType.TEMPERATURE),
    ]

    def test_with_sparge(self):
        strike, sparge, total, cls = classify_mash_steps(self.STEPS, True)
        assert [c.classification for c in cls] == [
            WaterClassification.STRIKE_WATER,
            WaterClassification.SPARGE_WATER_INFERRED,
            WaterClassification.SPARGE_WATER_BYNAME,
            WaterClassification.TEMPERATURE_RAMP,
        ]
        assert (strike, sparge, total) == (12.0, 11.0, 23.0)

    def test_without_sparge(self):
        """Each step is counted once even when later water joins the strike."""
        strike, sparge, total, cls = classify_mash_steps(self.STEPS, False)
        assert cls[1].classification == WaterClassification.ADDITIONAL_STRIKE
        assert (strike, sparge, total) == (15.0, 8.0, 23.0)

    def test_unknown_infusion(self):
        steps = [
            MashStep(name="Mash In", step_type=StepType.INFUSION, infuse_amount=12.0),
            MashStep(name="Odd", step_type=StepType.UNKNOWN, infuse_amount=2.0),
        ]
        _, sparge, _, cls = classify_mash_steps(steps, True)
        assert cls[1].classification == WaterClassification.SPARGE_WATER_UNKNOWN
        assert sparge == 2.0

    def test_step_names_default(self):
        _, _, _, cls = classify_mash_steps([MashStep(step_type=StepType.INFUSION, infuse_amount=5.0)], True)
        assert cls[0].name == "Step 1"

    def test_explicit_sparge_volume_sources(self):
        beerjson = [MashStep(name="Sparge", step_type=StepType.SPARGE, amount=9.0)]
        beerxml = [MashStep(step_type=StepType.SPARGE, infuse_amount=7.0)]
        assert find_explicit_sparge_volume(beerjson).source == "beerjson_step"
        found = find_explicit_sparge_volume(beerxml)
        assert (found.volume_l, found.source, found.step_name) == (7.0, "beerxml_step", "Sparge")
        assert find_explicit_sparge_volume(self.STEPS) is None
