"""
src/sparge_estimator.py
Sparge volume implied by the strike water and the pre-boil target, with balance checks.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from brew_math import MAX_SPARGE_RATIO, MAX_STRIKE_RATIO, MIN_STRIKE_RATIO, BrewMath
from brew_validation import ValidationReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpargeCalculation:
    target_cold_l: float
    strike_water_l: float
    grain_absorption_l: float
    lauter_deadspace_l: float
    top_up_kettle_l: float
    volume_from_strike_l: float
    raw_required_sparge_l: float
    required_sparge_l: float

    def to_dict(self):
        return {
            "target_cold_l": self.target_cold_l,
            "strike_water_l": self.strike_water_l,
            "grain_absorption_l": self.grain_absorption_l,
            "lauter_deadspace_l": self.lauter_deadspace_l,
            "top_up_kettle_l": self.top_up_kettle_l,
            "volume_from_strike_l": self.volume_from_strike_l,
            "raw_required_sparge_l": self.raw_required_sparge_l,
            "required_sparge_l": self.required_sparge_l,
        }


@dataclass(frozen=True)
class SpargeEstimate:
    volume_l: float
    source: str
    reason: Optional[str] = None
    calculation: Optional[SpargeCalculation] = None
    validation: ValidationReport = field(default_factory=ValidationReport)

    def to_dict(self):
        return {
            "volume_l": self.volume_l,
            "source": self.source,
            "reason": self.reason,
            "calculation": None if self.calculation is None else self.calculation.to_dict(),
            "validation": self.validation.to_dict(),
        }


def compute_sparge_calculation(target_l, is_no_boil, strike_l, absorption_l,
                               lauter_deadspace_l, top_up_kettle_l) -> SpargeCalculation:
    target_cold = target_l / BrewMath.thermal_factor(is_no_boil)
    from_strike = strike_l - absorption_l - lauter_deadspace_l
    required = target_cold - from_strike - top_up_kettle_l
    return SpargeCalculation(
        target_cold_l=target_cold,
        strike_water_l=strike_l,
        grain_absorption_l=absorption_l,
        lauter_deadspace_l=lauter_deadspace_l,
        top_up_kettle_l=top_up_kettle_l,
        volume_from_strike_l=from_strike,
        raw_required_sparge_l=required,
        required_sparge_l=max(0.0, required),
    )


def validate_sparge_calculation(calc: SpargeCalculation, batch_size_l, sparge_l=None) -> ValidationReport:
    """
    `sparge_l` is the sparge volume actually planned; defaults to the clamped
    required sparge. Only the water-balance check produces an error.
    """
    report = ValidationReport()
    sparge = calc.required_sparge_l if sparge_l is None else sparge_l

    total = calc.strike_water_l + sparge
    if total > 0 and sparge > 0:
        strike_ratio = calc.strike_water_l / total
        if strike_ratio < MIN_STRIKE_RATIO:
            report.add_warning(f"Strike water ratio ({strike_ratio * 100:.1f}%) is very low - "
                               f"consider increasing strike water")
        elif strike_ratio > MAX_STRIKE_RATIO:
            report.add_warning(f"Strike water ratio ({strike_ratio * 100:.1f}%) is very high - "
                               f"sparge volume may be too low")

    if sparge > calc.target_cold_l * MAX_SPARGE_RATIO:
        report.add_warning(f"Sparge volume ({sparge:.2f}L) is very high (>75% of target volume)")

    if calc.raw_required_sparge_l < 0:
        report.add_warning(f"Calculated sparge volume is negative ({calc.raw_required_sparge_l:.2f}L) - "
                           f"strike water may be sufficient")

    tolerance = BrewMath.batch_tolerance_l(batch_size_l)
    water_out = calc.volume_from_strike_l + sparge + calc.top_up_kettle_l
    balance_error = abs(water_out - calc.target_cold_l)
    if balance_error > tolerance:
        pct = balance_error / calc.target_cold_l * 100 if calc.target_cold_l else 0.0
        report.add_error(f"Water balance error: {balance_error:.2f}L ({pct:.1f}%) difference "
                         f"between calculated and target volumes")

    return report


def estimate_sparge_volume(inputs, requirements) -> SpargeEstimate:
    decision = inputs.sparge_decision
    if not decision.uses_sparge:
        return SpargeEstimate(
            volume_l=0.0,
            source="no_sparge_system",
            reason=f"System does not use sparge ({decision.method})",
        )

    eq = inputs.equipment
    calc = compute_sparge_calculation(
        requirements.target_volume_l,
        inputs.is_no_boil,
        requirements.strike_water_l,
        inputs.grain_data.absorption_l,
        eq.lauter_deadspace_l,
        eq.top_up_kettle_l,
    )

    explicit = inputs.explicit_sparge_volume
    if explicit is not None:
        validation = validate_sparge_calculation(calc, inputs.batch_size_l, explicit.volume_l)
        return SpargeEstimate(
            volume_l=explicit.volume_l,
            source="recipe_step",
            reason=f"Sparge volume taken from mash step '{explicit.step_name}'",
            calculation=calc,
            validation=validation,
        )

    validation = validate_sparge_calculation(calc, inputs.batch_size_l)
    if calc.raw_required_sparge_l < 0:
        logger.info("Required sparge %.2f L is negative, clamped to 0", calc.raw_required_sparge_l)

    if calc.required_sparge_l > 0:
        return SpargeEstimate(
            volume_l=calc.required_sparge_l,
            source="calculated_with_validation",
            calculation=calc,
            validation=validation,
        )
    return SpargeEstimate(
        volume_l=0.0,
        source="calculated_none",
        reason="Strike water sufficient for target pre-boil volume",
        calculation=calc,
        validation=validation,
    )
