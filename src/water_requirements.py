"""
src/water_requirements.py
Fills in strike and sparge volumes the recipe did not state.
"""
import logging
from dataclasses import dataclass

from brew_math import QT_TO_L, STRIKE_RATIO_DEFAULT, BrewMath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaterRequirements:
    strike_water_l: float
    sparge_water_l: float
    total_mash_water_l: float
    mash_water_l: float
    water_to_grain_ratio_qt_lb: float
    target_volume_l: float
    method: str

    def to_dict(self):
        return {
            "strike_water_l": self.strike_water_l,
            "sparge_water_l": self.sparge_water_l,
            "total_mash_water_l": self.total_mash_water_l,
            "mash_water_l": self.mash_water_l,
            "water_to_grain_ratio_qt_lb": self.water_to_grain_ratio_qt_lb,
            "target_volume_l": self.target_volume_l,
            "method": self.method,
        }


def _split(required_l, strike_l, sparge_l, sparge_system):
    """Divides the required water between strike and sparge. Returns (strike, sparge)."""
    if not sparge_system:
        return required_l, 0.0
    if sparge_l > 0:
        return required_l - sparge_l, sparge_l
    if strike_l > 0:
        return strike_l, max(0.0, required_l - strike_l)
    strike = required_l * STRIKE_RATIO_DEFAULT
    return strike, required_l - strike


def calculate_water_requirements(inputs, evaporation) -> WaterRequirements:
    eq = inputs.equipment
    grain = inputs.grain_data
    mash = inputs.mash_water_data

    strike = mash.strike_water_l
    sparge = mash.sparge_water_l
    total = mash.total_mash_water_l

    target = evaporation.post_boil_volume_l if inputs.is_no_boil else inputs.boil_size_l
    factor = BrewMath.thermal_factor(inputs.is_no_boil)
    sparge_system = inputs.uses_sparge and not inputs.system.is_no_sparge

    def required_for(volume_l):
        return volume_l + grain.absorption_l + eq.lauter_deadspace_l - eq.top_up_kettle_l

    if inputs.is_no_boil and evaporation.trub_chiller_loss_l is not None:
        method = "no_boil_back_solved"
        required = required_for(evaporation.post_boil_volume_l)
        # sparge already known from the steps is kept; strike gets the rest
        if sparge_system and sparge > 0:
            strike, sparge = required - sparge, sparge
        else:
            strike, sparge = _split(required, 0.0, 0.0, sparge_system)

    elif not total and not strike:
        if mash.has_water_grain_ratio and grain.total_weight_lb > 0:
            method = "water_grain_ratio"
            mash_water = mash.water_grain_ratio_qt_lb * grain.total_weight_lb * QT_TO_L
            strike = mash_water + eq.mash_tun_deadspace_l
            hot_recoverable = (strike + sparge - grain.absorption_l - eq.lauter_deadspace_l
                               + eq.top_up_kettle_l) * factor
            if hot_recoverable < target and sparge_system:
                sparge += (target - hot_recoverable) / factor
        else:
            method = "back_solved"
            strike, sparge = _split(required_for(target / factor), strike, sparge, sparge_system)

    else:
        method = "recipe_steps"
        if sparge == 0 and sparge_system:
            sparge = max(0.0, required_for(target / factor) - strike)
            method = "recipe_steps_sparge_derived"

    total = strike + sparge
    mash_water_l = max(0.0, strike - eq.mash_tun_deadspace_l)
    ratio = BrewMath.water_to_grain_ratio(mash_water_l, grain.total_weight_lb)

    logger.debug("Water requirements (%s): strike %.3f L, sparge %.3f L", method, strike, sparge)

    return WaterRequirements(
        strike_water_l=strike,
        sparge_water_l=sparge,
        total_mash_water_l=total,
        mash_water_l=mash_water_l,
        water_to_grain_ratio_qt_lb=ratio,
        target_volume_l=target,
        method=method,
    )
