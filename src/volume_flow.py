"""
src/volume_flow.py
Seven-stage volume flow from strike water to packaging.

Every stage is rounded to what the user sees before the next stage uses it,
so the displayed numbers add up. The final fermenter volume is then forced
onto the rounded batch size by re-solving the trub/chiller loss.
"""
import logging
from dataclasses import dataclass

from brew_math import (
    FLOW_ADJUSTMENT_WARNING_L,
    THERMAL_CONTRACTION,
    THERMAL_EXPANSION,
    THERMAL_EXPANSION_WARNING_THRESHOLD,
    VOLUME_TOLERANCE_L,
    BrewMath,
)
from brew_validation import ValidationReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowInputs:
    strike_water_l: float
    sparge_water_l: float
    mash_tun_deadspace_l: float
    grain_absorption_l: float
    top_up_kettle_l: float
    top_up_water_l: float
    post_boil_volume_l: float
    evap_loss_l: float
    trub_chiller_loss_l: float
    fermenter_loss_l: float
    batch_size_l: float
    is_no_boil: bool
    lauter_deadspace_l: float = 0.0


@dataclass(frozen=True)
class VolumeFlowResult:
    # Stage volumes
    strike_water_l: float
    total_mash_water_l: float
    volume_into_kettle_l: float
    volume_pre_boil_l: float
    volume_post_boil_l: float
    volume_to_fermenter_l: float
    volume_packaging_l: float

    # Rounded inputs the stages used
    mash_water_l: float
    mash_tun_deadspace_l: float
    sparge_water_l: float
    grain_absorption_l: float
    top_up_kettle_l: float
    top_up_water_l: float
    evap_loss_l: float
    lauter_deadspace_l: float

    # Reference volumes
    volume_after_cooling_l: float
    volume_post_mash_l: float
    volume_pre_boil_cold_l: float

    thermal_expansion_l: float
    thermal_contraction_l: float

    adjusted_trub_chiller_loss_l: float
    was_adjusted: bool
    adjustment_l: float

    @property
    def thermal_effects(self):
        return {"expansion_l": self.thermal_expansion_l, "contraction_l": self.thermal_contraction_l}

    def to_dict(self):
        return {
            "stages": {
                "strike_water_l": self.strike_water_l,
                "total_mash_water_l": self.total_mash_water_l,
                "into_kettle_l": self.volume_into_kettle_l,
                "pre_boil_l": self.volume_pre_boil_l,
                "post_boil_l": self.volume_post_boil_l,
                "to_fermenter_l": self.volume_to_fermenter_l,
                "packaging_l": self.volume_packaging_l,
            },
            "rounded_inputs": {
                "mash_water_l": self.mash_water_l,
                "mash_tun_deadspace_l": self.mash_tun_deadspace_l,
                "sparge_water_l": self.sparge_water_l,
                "grain_absorption_l": self.grain_absorption_l,
                "top_up_kettle_l": self.top_up_kettle_l,
                "top_up_water_l": self.top_up_water_l,
                "evap_loss_l": self.evap_loss_l,
                "lauter_deadspace_l": self.lauter_deadspace_l,
            },
            "volume_after_cooling_l": self.volume_after_cooling_l,
            "volume_post_mash_l": self.volume_post_mash_l,
            "volume_pre_boil_cold_l": self.volume_pre_boil_cold_l,
            "thermal_effects": self.thermal_effects,
            "adjusted_trub_chiller_loss_l": self.adjusted_trub_chiller_loss_l,
            "was_adjusted": self.was_adjusted,
            "adjustment_l": self.adjustment_l,
        }


def build_flow_inputs(inputs, evaporation, requirements) -> FlowInputs:
    eq = inputs.equipment
    return FlowInputs(
        strike_water_l=requirements.strike_water_l,
        sparge_water_l=requirements.sparge_water_l,
        mash_tun_deadspace_l=eq.mash_tun_deadspace_l,
        grain_absorption_l=inputs.grain_data.absorption_l,
        top_up_kettle_l=eq.top_up_kettle_l,
        top_up_water_l=eq.top_up_water_l,
        post_boil_volume_l=evaporation.post_boil_volume_l,
        evap_loss_l=evaporation.evap_loss_l,
        trub_chiller_loss_l=evaporation.trub_chiller_loss_l,
        fermenter_loss_l=eq.fermenter_loss_l,
        batch_size_l=inputs.batch_size_l,
        is_no_boil=inputs.is_no_boil,
        lauter_deadspace_l=eq.lauter_deadspace_l,
    )


def calculate_volume_flow(flow: FlowInputs, units="imperial") -> VolumeFlowResult:
    def r(liters):
        return BrewMath.round_for_display(liters, units)

    # 1. mash water + deadspace = strike
    mash_water = r(max(0.0, flow.strike_water_l - flow.mash_tun_deadspace_l))
    deadspace = r(flow.mash_tun_deadspace_l)
    strike = r(mash_water + deadspace)

    # 2. strike + sparge = total
    sparge = r(flow.sparge_water_l)
    total = r(strike + sparge)

    # 3. total - absorption + top-up kettle = into kettle
    absorption = r(flow.grain_absorption_l)
    top_up_kettle = r(flow.top_up_kettle_l)
    into_kettle = r(total - absorption + top_up_kettle)

    # 4. pre-boil (hot)
    if flow.is_no_boil:
        expansion = 0.0
        pre_boil = into_kettle
    else:
        expansion = r(into_kettle * THERMAL_EXPANSION)
        pre_boil = r(into_kettle + expansion)

    # 5. post-boil
    evap = r(flow.evap_loss_l)
    if flow.is_no_boil:
        contraction = 0.0
        post_boil = flow.post_boil_volume_l
    else:
        post_boil = r(pre_boil - evap)
        contraction = r(post_boil * THERMAL_CONTRACTION)

    # 6. to fermenter, reconciled onto the batch size
    trub = r(flow.trub_chiller_loss_l)
    top_up_water = r(flow.top_up_water_l)
    after_cooling = post_boil if flow.is_no_boil else r(post_boil - contraction)
    to_fermenter = r(after_cooling - trub + top_up_water)

    target = r(flow.batch_size_l)
    difference = abs(to_fermenter - target)
    was_adjusted = difference > VOLUME_TOLERANCE_L
    adjusted_trub = trub
    if was_adjusted:
        adjusted_trub = r(after_cooling + top_up_water - target)
        logger.info("Trub/chiller loss re-solved %.3f -> %.3f L to hit batch size %.3f L",
                    trub, adjusted_trub, target)
        to_fermenter = target

    # 7. packaging
    packaging = r(to_fermenter - flow.fermenter_loss_l)

    return VolumeFlowResult(
        strike_water_l=strike,
        total_mash_water_l=total,
        volume_into_kettle_l=into_kettle,
        volume_pre_boil_l=pre_boil,
        volume_post_boil_l=post_boil,
        volume_to_fermenter_l=to_fermenter,
        volume_packaging_l=packaging,
        mash_water_l=mash_water,
        mash_tun_deadspace_l=deadspace,
        sparge_water_l=sparge,
        grain_absorption_l=absorption,
        top_up_kettle_l=top_up_kettle,
        top_up_water_l=top_up_water,
        evap_loss_l=evap,
        lauter_deadspace_l=r(flow.lauter_deadspace_l),
        volume_after_cooling_l=after_cooling,
        volume_post_mash_l=r(total - absorption),
        volume_pre_boil_cold_l=pre_boil if flow.is_no_boil else r(pre_boil - expansion),
        thermal_expansion_l=expansion,
        thermal_contraction_l=contraction,
        adjusted_trub_chiller_loss_l=adjusted_trub,
        was_adjusted=was_adjusted,
        adjustment_l=difference if was_adjusted else 0.0,
    )


def validate_volume_flow(flow: VolumeFlowResult) -> ValidationReport:
    report = ValidationReport()
    if flow.was_adjusted and flow.adjustment_l > FLOW_ADJUSTMENT_WARNING_L:
        report.add_warning(
            f"Trub/chiller loss adjusted by {flow.adjustment_l:.2f}L to match target fermenter volume"
        )
    if flow.volume_pre_boil_l < flow.volume_to_fermenter_l:
        report.add_warning("Pre-boil volume is less than fermenter volume - check calculation inputs")
    if flow.thermal_expansion_l > flow.volume_into_kettle_l * THERMAL_EXPANSION_WARNING_THRESHOLD:
        report.add_warning("Thermal expansion seems unusually high (>10% of kettle volume)")
    return report
