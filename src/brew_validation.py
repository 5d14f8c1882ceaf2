"""
src/brew_validation.py
Warning/error collection and the range checks used across the water engine.
"""
from dataclasses import dataclass, field
from typing import List

from brew_errors import RecipeStructureError
from brew_math import (
    BOIL_OFF_RATE_LIMIT_MAX_L_HR,
    BOIL_OFF_RATE_LIMIT_MIN_L_HR,
    BOIL_OFF_RATE_MAX_L_HR,
    BOIL_OFF_RATE_MIN_L_HR,
)


@dataclass
class ValidationReport:
    """Non-fatal findings. `errors` mean an inconsistent result, not a failed computation."""
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self):
        return not self.errors

    def add_warning(self, msg):
        self.warnings.append(msg)

    def add_error(self, msg):
        self.errors.append(msg)

    def extend(self, other):
        self.warnings.extend(other.warnings)
        self.errors.extend(other.errors)
        return self

    def to_dict(self):
        return {"warnings": list(self.warnings), "errors": list(self.errors)}


def _num(value):
    return f"{value:g}"


def validate_physical_range(value, min_val, max_val, warn_min=None, warn_max=None,
                            unit="", name="value"):
    report = ValidationReport()
    if value is None or value != value:
        report.add_error(f"{name} must be a valid number")
        return report

    if value < min_val:
        report.add_error(f"{name} {_num(value)}{unit} is below minimum allowed value of {_num(min_val)}{unit}")
    elif value > max_val:
        report.add_error(f"{name} {_num(value)}{unit} is above maximum allowed value of {_num(max_val)}{unit}")
    elif warn_min is not None and value < warn_min:
        report.add_warning(f"{name} {_num(value)}{unit} is unusually low "
                           f"(typical range: {_num(warn_min)}-{_num(warn_max)}{unit})")
    elif warn_max is not None and value > warn_max:
        report.add_warning(f"{name} {_num(value)}{unit} is unusually high "
                           f"(typical range: {_num(warn_min)}-{_num(warn_max)}{unit})")
    return report


def validate_boil_off_rate(boil_off_rate_l_hr):
    return validate_physical_range(
        boil_off_rate_l_hr,
        BOIL_OFF_RATE_LIMIT_MIN_L_HR, BOIL_OFF_RATE_LIMIT_MAX_L_HR,
        warn_min=BOIL_OFF_RATE_MIN_L_HR, warn_max=BOIL_OFF_RATE_MAX_L_HR,
        unit="L/hr", name="Boil-off rate",
    )


def check_recipe_structure(recipe):
    """Raises RecipeStructureError for the failures the engine cannot self-heal."""
    details = {"recipe": recipe.name}

    if recipe.batch_size is None or recipe.batch_size <= 0:
        raise RecipeStructureError(
            "Recipe must have a valid batch size greater than 0",
            user_message="Recipe batch size is invalid or missing.",
            details=dict(details, field="batch_size", value=recipe.batch_size),
        )
    if recipe.boil_size is not None and recipe.boil_size < 0:
        raise RecipeStructureError(
            "Recipe cannot have negative boil size",
            user_message="Recipe contains invalid negative volume values.",
            details=dict(details, field="boil_size", value=recipe.boil_size),
        )
    if recipe.fermentables is None:
        raise RecipeStructureError(
            "Recipe has no fermentables collection",
            details=dict(details, field="fermentables"),
        )
    if recipe.mash is None:
        raise RecipeStructureError(
            "Recipe has no mash collection",
            details=dict(details, field="mash"),
        )


def validate_recipe_type(recipe_type, total_grain_kg):
    """
    Checks the declared recipe type against the grain bill.
    Returns (normalized_type, report); a grain-less all-grain recipe is structural.
    """
    normalized = (recipe_type or "all grain").lower()
    report = ValidationReport()

    if normalized in ("all grain", "partial mash") and total_grain_kg <= 0:
        raise RecipeStructureError(
            "Recipe must include fermentables for all-grain brewing",
            user_message="Recipe type and ingredient mismatch detected.",
            details={"recipe_type": normalized, "total_grain_kg": total_grain_kg},
        )
    if normalized == "extract" and total_grain_kg > 0:
        report.add_warning("Extract recipe contains grain - may be mislabeled as extract recipe")

    return normalized, report
