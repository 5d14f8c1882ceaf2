"""
src/evaporation_solver.py
Evaporation loss, post-boil volume and trub/chiller loss from the most trusted
equipment measurement.

Trust order while boiling:
    1. absolute boil-off rate (L/hr)
    2. trub/chiller loss
    3. evaporation percentage
    4. typical boil-off rate, repaired by a bounded search
"""
import logging
from dataclasses import dataclass
from typing import Optional

from brew_math import (
    BOIL_OFF_RATE_MIN_L_HR,
    BOIL_OFF_RATE_TYPICAL_L_HR,
    BOIL_OFF_SEARCH_STEP_L_HR,
    EVAP_RATE_DISAGREEMENT_PCT,
    THERMAL_CONTRACTION,
    TRUB_LOSS_DEFAULT,
    TRUB_LOSS_MAX,
    TRUB_LOSS_MIN,
    TRUB_LOSS_TOLERANCE_L,
    BrewMath,
)
from brew_validation import ValidationReport, validate_boil_off_rate
from profile_data import DataSource

logger = logging.getLogger(__name__)

# 3.8 down to 1.0 in 0.2 steps is 15 trial rates
BOIL_OFF_SEARCH_MAX_TRIALS = int(round(
    (BOIL_OFF_RATE_TYPICAL_L_HR - BOIL_OFF_RATE_MIN_L_HR) / BOIL_OFF_SEARCH_STEP_L_HR
)) + 1

NO_BOIL_TRUB_FLAG = "Calculated trub/chiller loss for no-boil recipe"
DERIVED_RATE_FLAG = "Derived from boil/batch volumes and trub/chiller losses"
PRE_BOIL_LOW_FLAG = "Pre-boil volume may be too low for target batch size"


@dataclass(frozen=True)
class EvaporationResult:
    evap_loss_l: float
    post_boil_volume_l: float
    boil_off_rate_l_hr: float
    evap_rate_pct: float
    trub_chiller_loss_l: float
    data_source: DataSource
    evap_rate_flag: Optional[str] = None
    trub_loss_flag: Optional[str] = None
    pre_boil_volume_flag: Optional[str] = None
    search_trials: int = 0

    @property
    def flags(self):
        return {
            "evap_rate_flag": self.evap_rate_flag,
            "trub_loss_flag": self.trub_loss_flag,
            "pre_boil_volume_flag": self.pre_boil_volume_flag,
        }

    def to_dict(self):
        return {
            "evap_loss_l": self.evap_loss_l,
            "post_boil_volume_l": self.post_boil_volume_l,
            "boil_off_rate_l_hr": self.boil_off_rate_l_hr,
            "evap_rate_pct": self.evap_rate_pct,
            "trub_chiller_loss_l": self.trub_chiller_loss_l,
            "data_source": self.data_source.value,
            "flags": self.flags,
            "search_trials": self.search_trials,
        }


def _forward_trub_loss(post_boil_l, top_up_water_l, batch_size_l):
    """Trub/chiller loss that lands exactly on the batch size after cooling."""
    return post_boil_l * (1 - THERMAL_CONTRACTION) + top_up_water_l - batch_size_l


def _required_post_boil(batch_size_l, trub_l, top_up_water_l):
    return (batch_size_l + trub_l - top_up_water_l) / (1 - THERMAL_CONTRACTION)


def search_boil_off_rate(boil_size_l, boil_time_min, batch_size_l, top_up_water_l):
    """
    Scans trial rates from the typical rate down to the minimum and returns
    (rate, trub_l, trials) for the first one giving a plausible trub/chiller loss,
    or (None, None, trials) when none does. Never more than BOIL_OFF_SEARCH_MAX_TRIALS.
    """
    hours = boil_time_min / 60.0
    for i in range(BOIL_OFF_SEARCH_MAX_TRIALS):
        rate = round(BOIL_OFF_RATE_TYPICAL_L_HR - i * BOIL_OFF_SEARCH_STEP_L_HR, 6)
        post = boil_size_l - rate * hours
        trub = _forward_trub_loss(post, top_up_water_l, batch_size_l)
        if TRUB_LOSS_MIN <= trub <= TRUB_LOSS_MAX:
            return rate, trub, i + 1
    return None, None, BOIL_OFF_SEARCH_MAX_TRIALS


def _solve_no_boil(inputs):
    eq = inputs.equipment
    if eq.trub_chiller_loss_l is not None:
        post = inputs.batch_size_l + eq.trub_chiller_loss_l - eq.top_up_water_l
        return EvaporationResult(
            evap_loss_l=0.0,
            post_boil_volume_l=post,
            boil_off_rate_l_hr=0.0,
            evap_rate_pct=0.0,
            trub_chiller_loss_l=eq.trub_chiller_loss_l,
            data_source=DataSource.TRUB_LOSS,
        )

    post = inputs.boil_size_l
    return EvaporationResult(
        evap_loss_l=0.0,
        post_boil_volume_l=post,
        boil_off_rate_l_hr=0.0,
        evap_rate_pct=0.0,
        trub_chiller_loss_l=max(0.0, post - inputs.batch_size_l - eq.top_up_water_l),
        data_source=DataSource.DEFAULTS,
        trub_loss_flag=NO_BOIL_TRUB_FLAG,
    )


def _solve_boiling(inputs):
    eq = inputs.equipment
    batch = inputs.batch_size_l
    boil = inputs.boil_size_l
    minutes = inputs.boil_time_min
    hours = minutes / 60.0
    top_up = eq.top_up_water_l
    source = eq.data_source_priority

    evap_flag = None
    trub_flag = None
    pre_boil_flag = None
    trials = 0

    if source == DataSource.BOIL_OFF_RATE:
        rate = eq.boil_off_rate_l_hr
        evap = rate * hours
        pct = BrewMath.boil_off_rate_to_percentage(rate, boil)
        post = boil - evap
        trub = _forward_trub_loss(post, top_up, batch)

        supplied = eq.trub_chiller_loss_l
        if supplied is not None and supplied >= 0 and abs(supplied - trub) > TRUB_LOSS_TOLERANCE_L:
            trub_flag = f"Adjusted from {supplied:.2f} L to ensure target volume based on absolute boil-off rate."
        if eq.evap_rate_pct is not None and eq.evap_rate_pct > 0:
            if abs(eq.evap_rate_pct - pct) > EVAP_RATE_DISAGREEMENT_PCT:
                evap_flag = (f"Evaporation rate {eq.evap_rate_pct:.1f}% ignored; "
                             f"boil-off rate implies {pct:.1f}%")

    elif source == DataSource.TRUB_LOSS:
        trub = eq.trub_chiller_loss_l
        post = _required_post_boil(batch, trub, top_up)
        evap = boil - post
        if minutes > 0:
            rate = evap * (60.0 / minutes)
            pct = BrewMath.boil_off_rate_to_percentage(rate, boil)
            evap_flag = DERIVED_RATE_FLAG
        else:
            rate = 0.0
            pct = 0.0

    elif source == DataSource.EVAP_RATE:
        pct = eq.evap_rate_pct
        evap = boil * (pct / 100.0) * hours
        rate = BrewMath.percentage_to_boil_off_rate(pct, boil)
        post = boil - evap
        trub = _forward_trub_loss(post, top_up, batch)

    else:
        rate = BOIL_OFF_RATE_TYPICAL_L_HR
        evap = rate * hours
        post = boil - evap
        trub = _forward_trub_loss(post, top_up, batch)

        if not (TRUB_LOSS_MIN <= trub <= TRUB_LOSS_MAX):
            found_rate, found_trub, trials = search_boil_off_rate(boil, minutes, batch, top_up)
            if found_rate is not None:
                logger.info("Boil-off rate repaired to %.1f L/hr after %d trials", found_rate, trials)
                rate = found_rate
                evap = rate * hours
                post = boil - evap
                trub = found_trub
            else:
                logger.warning("No plausible boil-off rate found; pinning trub/chiller loss to %.1f L",
                               TRUB_LOSS_DEFAULT)
                pre_boil_flag = PRE_BOIL_LOW_FLAG
                trub = TRUB_LOSS_DEFAULT
                rate = BOIL_OFF_RATE_TYPICAL_L_HR
                post = _required_post_boil(batch, trub, top_up)
                evap = boil - post
        pct = BrewMath.boil_off_rate_to_percentage(rate, boil)

    if trub < 0 and trub_flag is None:
        trub_flag = (f"Post-boil volume is short of the target batch size; "
                     f"trub/chiller loss back-solved as {trub:.2f} L")

    # At most one rate-related flag
    rate_check = validate_boil_off_rate(rate)
    if rate_check.warnings and evap_flag is None:
        evap_flag = rate_check.warnings[0]

    return EvaporationResult(
        evap_loss_l=evap,
        post_boil_volume_l=post,
        boil_off_rate_l_hr=rate,
        evap_rate_pct=pct,
        trub_chiller_loss_l=trub,
        data_source=source,
        evap_rate_flag=evap_flag,
        trub_loss_flag=trub_flag,
        pre_boil_volume_flag=pre_boil_flag,
        search_trials=trials,
    )


def solve_evaporation(inputs) -> EvaporationResult:
    """`inputs` is a NormalizedBrewingInputs."""
    if inputs.is_no_boil:
        result = _solve_no_boil(inputs)
    else:
        result = _solve_boiling(inputs)

    logger.debug(
        "Evaporation via %s: evap %.3f L, post-boil %.3f L, rate %.3f L/hr, trub %.3f L",
        result.data_source.value, result.evap_loss_l, result.post_boil_volume_l,
        result.boil_off_rate_l_hr, result.trub_chiller_loss_l,
    )
    return result


def validate_evaporation(result: EvaporationResult) -> ValidationReport:
    report = ValidationReport()
    if result.boil_off_rate_l_hr > 0:
        report.extend(validate_boil_off_rate(result.boil_off_rate_l_hr))
    if result.post_boil_volume_l <= 0:
        report.add_error("Post-boil volume must be greater than 0")
    if result.trub_chiller_loss_l < 0:
        report.add_warning("Negative trub/chiller loss calculated")
    if result.evap_loss_l < 0:
        report.add_error("Negative evaporation loss calculated")
    return report
