"""Tests for the assembled result: flags, summary and derived totals."""

import json
from types import SimpleNamespace

import pytest

from evaporation_solver import PRE_BOIL_LOW_FLAG
from result_assembler import collect_flags


class TestCollectFlags:
    def test_order_and_reconciliation_flag(self):
        evaporation = SimpleNamespace(pre_boil_volume_flag="pre", evap_rate_flag=None, trub_loss_flag="trub")
        flow = SimpleNamespace(was_adjusted=True, adjusted_trub_chiller_loss_l=1.03)
        assert collect_flags(evaporation, flow) == (
            "pre",
            "trub",
            "Trub/chiller loss re-solved to 1.03 L so the fermenter volume matches the batch size",
        )

    def test_no_flags(self):
        evaporation = SimpleNamespace(pre_boil_volume_flag=None, evap_rate_flag=None, trub_loss_flag=None)
        assert collect_flags(evaporation, SimpleNamespace(was_adjusted=False)) == ()


class TestAssembledResult:
    def test_traditional_result(self, manager, traditional_recipe):
        result = manager.calculate(traditional_recipe)
        grain = result.inputs.grain_data
        assert result.is_valid
        assert result.equipment.name == "Three Vessel Home Brewery"
        assert result.equipment.trub_chiller_loss_l == result.flow.adjusted_trub_chiller_loss_l
        assert result.boil_off_rate_per_hour_l == pytest.approx(3.8)
        assert result.mash_volume_excl_deadspace_l == pytest.approx(result.requirements.mash_water_l
                                                                    + grain.displacement_l)
        assert result.total_mash_volume_l == pytest.approx(result.flow.strike_water_l + grain.displacement_l)
        assert result.summary.startswith("Uses sparge (high confidence via volume_balance_deficit)")
        assert result.summary.endswith("traditional brewing system")
        assert result.flags[0].startswith("Adjusted from 1.00 L")

    def test_pre_boil_flag_comes_first(self, manager, build_recipe):
        result = manager.calculate(build_recipe(boil_size=20.0))
        assert result.flags[0] == PRE_BOIL_LOW_FLAG
        assert "Negative evaporation loss calculated" in result.errors
        assert not result.is_valid

    def test_no_boil_has_no_boil_off(self, manager, no_boil_recipe):
        result = manager.calculate(no_boil_recipe)
        assert result.is_no_boil
        assert result.boil_off_rate_per_hour_l == 0.0
        assert result.flow.thermal_expansion_l == 0.0

    def test_warnings_collected_from_every_stage(self, manager, biab_recipe):
        result = manager.calculate(biab_recipe)
        assert any("adjusted by" in w for w in result.warnings)
        assert result.sparge_estimate.source == "no_sparge_system"

    def test_to_dict_is_json(self, manager, traditional_recipe):
        data = json.loads(json.dumps(manager.calculate(traditional_recipe).to_dict()))
        assert data["system_type"] == "traditional"
        assert data["sparge_analysis"]["uses_sparge"] is True
        assert data["sparge_analysis"]["grain_absorption_system"] == "Traditional System"
        assert data["volume_flow"]["stages"]["to_fermenter_l"] == pytest.approx(19.0, abs=0.01)
