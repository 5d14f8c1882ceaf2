"""
src/result_assembler.py
Packages every stage output into one WaterVolumeResult.
"""
from dataclasses import dataclass
from typing import Tuple

from evaporation_solver import EvaporationResult, validate_evaporation
from input_normalizer import NormalizedBrewingInputs
from sparge_estimator import SpargeEstimate
from volume_flow import VolumeFlowResult, validate_volume_flow
from water_requirements import WaterRequirements


@dataclass(frozen=True)
class EquipmentSummary:
    name: str
    mash_tun_deadspace_l: float
    lauter_deadspace_l: float
    trub_chiller_loss_l: float
    top_up_kettle_l: float
    top_up_water_l: float
    fermenter_loss_l: float
    boil_off_rate_l_hr: float
    evap_rate_pct: float

    def to_dict(self):
        return dict(self.__dict__)


@dataclass(frozen=True)
class WaterVolumeResult:
    inputs: NormalizedBrewingInputs
    evaporation: EvaporationResult
    requirements: WaterRequirements
    flow: VolumeFlowResult
    sparge_estimate: SpargeEstimate
    equipment: EquipmentSummary
    mash_volume_excl_deadspace_l: float
    total_mash_volume_l: float
    boil_off_rate_per_hour_l: float
    summary: str
    flags: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def is_no_boil(self):
        return self.inputs.is_no_boil

    @property
    def sparge_decision(self):
        return self.inputs.sparge_decision

    @property
    def is_valid(self):
        return not self.errors

    def to_dict(self):
        return {
            "summary": self.summary,
            "is_no_boil": self.is_no_boil,
            "system_type": self.inputs.system.system_type.value,
            "sparge_analysis": dict(
                self.sparge_decision.to_dict(),
                grain_absorption_rate_qt_lb=self.inputs.equipment.grain_absorption_rate_qt_lb,
                grain_absorption_system=self.inputs.equipment.grain_absorption_system,
                estimate=self.sparge_estimate.to_dict(),
            ),
            "inputs": self.inputs.to_dict(),
            "evaporation": self.evaporation.to_dict(),
            "water_requirements": self.requirements.to_dict(),
            "volume_flow": self.flow.to_dict(),
            "equipment": self.equipment.to_dict(),
            "mash_volume_excl_deadspace_l": self.mash_volume_excl_deadspace_l,
            "total_mash_volume_l": self.total_mash_volume_l,
            "boil_off_rate_per_hour_l": self.boil_off_rate_per_hour_l,
            "flags": list(self.flags),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


def collect_flags(evaporation, flow):
    flags = [
        evaporation.pre_boil_volume_flag,
        evaporation.evap_rate_flag,
        evaporation.trub_loss_flag,
    ]
    if flow.was_adjusted:
        flags.append(
            f"Trub/chiller loss re-solved to {flow.adjusted_trub_chiller_loss_l:.2f} L "
            f"so the fermenter volume matches the batch size"
        )
    return tuple(f for f in flags if f)


def assemble_result(inputs, evaporation, requirements, flow, sparge_estimate) -> WaterVolumeResult:
    warnings = list(inputs.warnings)
    errors = list(inputs.errors)
    for report in (validate_evaporation(evaporation), validate_volume_flow(flow), sparge_estimate.validation):
        warnings.extend(report.warnings)
        errors.extend(report.errors)

    eq = inputs.equipment
    equipment = EquipmentSummary(
        name=eq.name or "Unknown",
        mash_tun_deadspace_l=eq.mash_tun_deadspace_l,
        lauter_deadspace_l=eq.lauter_deadspace_l,
        trub_chiller_loss_l=flow.adjusted_trub_chiller_loss_l,
        top_up_kettle_l=eq.top_up_kettle_l,
        top_up_water_l=eq.top_up_water_l,
        fermenter_loss_l=eq.fermenter_loss_l,
        boil_off_rate_l_hr=evaporation.boil_off_rate_l_hr,
        evap_rate_pct=evaporation.evap_rate_pct,
    )

    return WaterVolumeResult(
        inputs=inputs,
        evaporation=evaporation,
        requirements=requirements,
        flow=flow,
        sparge_estimate=sparge_estimate,
        equipment=equipment,
        mash_volume_excl_deadspace_l=requirements.mash_water_l + inputs.grain_data.displacement_l,
        total_mash_volume_l=flow.strike_water_l + inputs.grain_data.displacement_l,
        boil_off_rate_per_hour_l=0.0 if inputs.is_no_boil else evaporation.boil_off_rate_l_hr,
        summary=f"{inputs.sparge_decision.summary}; {inputs.system.description}",
        flags=collect_flags(evaporation, flow),
        warnings=tuple(warnings),
        errors=tuple(errors),
    )
