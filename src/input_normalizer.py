"""
src/input_normalizer.py
Turns a Recipe into the canonical quantities the water stages work from.

Reading happens in two calls around the sparge classifier:
    reading = normalizer.read_recipe(recipe)           # decision-independent
    decision = classify_sparge_usage(reading.evidence)
    inputs = normalizer.normalize(reading, decision)   # decision-dependent
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from brew_math import (
    BOIL_SIZE_FALLBACK_FACTOR,
    DEFAULT_BOIL_TIME_MIN,
    FERMENTER_LOSS_DEFAULT,
    GRAIN_ABSORPTION_ALLINONE,
    GRAIN_ABSORPTION_DEFAULT,
    MASH_TUN_DEADSPACE_DEFAULT,
    WATER_GRAIN_RATIO_MAX,
    WATER_GRAIN_RATIO_MIN,
    BrewMath,
)
from brew_validation import (
    ValidationReport,
    check_recipe_structure,
    validate_boil_off_rate,
    validate_physical_range,
    validate_recipe_type,
)
from profile_data import (
    DataSource,
    EquipmentProfile,
    Recipe,
    StepType,
    SystemType,
    WaterClassification,
    total_grain_kg,
)
from sparge_classifier import (
    ALL_IN_ONE_TERMS,
    SpargeDecision,
    SpargeEvidence,
    volume_balance_indicator,
)

logger = logging.getLogger(__name__)

HIGH_NO_SPARGE_DEADSPACE_L = 1.0

SPARGE_CLASSIFICATIONS = (
    WaterClassification.SPARGE_WATER,
    WaterClassification.SPARGE_WATER_BYNAME,
    WaterClassification.SPARGE_WATER_INFERRED,
    WaterClassification.SPARGE_WATER_UNKNOWN,
)
STRIKE_CLASSIFICATIONS = (
    WaterClassification.STRIKE_WATER,
    WaterClassification.ADDITIONAL_STRIKE,
)


# --- RESULT TYPES ---

@dataclass(frozen=True)
class GrainData:
    total_weight_kg: float
    total_weight_lb: float
    displacement_l: float
    absorption_l: float


@dataclass(frozen=True)
class SystemClassification:
    system_type: SystemType
    is_no_sparge: bool
    is_all_in_one: bool = False
    is_biab: bool = False
    is_extract: bool = False
    is_partial_mash: bool = False

    @property
    def description(self):
        return f"{self.system_type.value.replace('_', ' ')} brewing system"


@dataclass(frozen=True)
class EquipmentData:
    name: str
    mash_tun_deadspace_l: float
    lauter_deadspace_l: float
    top_up_kettle_l: float
    top_up_water_l: float
    fermenter_loss_l: float
    boil_off_rate_l_hr: Optional[float]
    evap_rate_pct: Optional[float]
    trub_chiller_loss_l: Optional[float]
    grain_absorption_rate_qt_lb: float
    grain_absorption_system: str
    data_source_priority: DataSource


@dataclass(frozen=True)
class StepClassification:
    index: int
    name: str
    type: str
    infuse_amount_l: float
    classification: WaterClassification


@dataclass(frozen=True)
class MashWaterData:
    strike_water_l: float
    sparge_water_l: float
    total_mash_water_l: float
    has_water_grain_ratio: bool
    water_grain_ratio_qt_lb: float
    step_classifications: Tuple[StepClassification, ...] = ()


@dataclass(frozen=True)
class ExplicitSpargeVolume:
    volume_l: float
    source: str      # beerjson_step (amount) or beerxml_step (infuse_amount)
    step_name: str


@dataclass(frozen=True)
class RecipeReading:
    recipe: Recipe
    batch_size_l: float
    boil_size_l: float
    boil_time_min: float
    is_no_boil: bool
    recipe_type: str
    grain_kg: float
    evidence: SpargeEvidence
    explicit_sparge_volume: Optional[ExplicitSpargeVolume]
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NormalizedBrewingInputs:
    batch_size_l: float
    boil_size_l: float
    boil_time_min: float
    is_no_boil: bool
    recipe_type: str
    system: SystemClassification
    sparge_decision: SpargeDecision
    explicit_sparge_volume: Optional[ExplicitSpargeVolume]
    grain_data: GrainData
    equipment: EquipmentData
    mash_water_data: MashWaterData
    warnings: Tuple[str, ...] = field(default=())
    errors: Tuple[str, ...] = field(default=())

    @property
    def uses_sparge(self):
        return self.sparge_decision.uses_sparge

    def to_dict(self):
        eq = self.equipment
        mw = self.mash_water_data
        esv = self.explicit_sparge_volume
        return {
            "batch_size_l": self.batch_size_l,
            "boil_size_l": self.boil_size_l,
            "boil_time_min": self.boil_time_min,
            "is_no_boil": self.is_no_boil,
            "recipe_type": self.recipe_type,
            "system_type": self.system.system_type.value,
            "is_no_sparge": self.system.is_no_sparge,
            "sparge_decision": self.sparge_decision.to_dict(),
            "explicit_sparge_volume": None if esv is None else {
                "volume_l": esv.volume_l, "source": esv.source, "step_name": esv.step_name,
            },
            "grain_data": {
                "total_weight_kg": self.grain_data.total_weight_kg,
                "total_weight_lb": self.grain_data.total_weight_lb,
                "displacement_l": self.grain_data.displacement_l,
                "absorption_l": self.grain_data.absorption_l,
            },
            "equipment": {
                "name": eq.name,
                "mash_tun_deadspace_l": eq.mash_tun_deadspace_l,
                "lauter_deadspace_l": eq.lauter_deadspace_l,
                "top_up_kettle_l": eq.top_up_kettle_l,
                "top_up_water_l": eq.top_up_water_l,
                "fermenter_loss_l": eq.fermenter_loss_l,
                "boil_off_rate_l_hr": eq.boil_off_rate_l_hr,
                "evap_rate_pct": eq.evap_rate_pct,
                "trub_chiller_loss_l": eq.trub_chiller_loss_l,
                "grain_absorption_rate_qt_lb": eq.grain_absorption_rate_qt_lb,
                "grain_absorption_system": eq.grain_absorption_system,
                "data_source_priority": eq.data_source_priority.value,
            },
            "mash_water_data": {
                "strike_water_l": mw.strike_water_l,
                "sparge_water_l": mw.sparge_water_l,
                "total_mash_water_l": mw.total_mash_water_l,
                "has_water_grain_ratio": mw.has_water_grain_ratio,
                "water_grain_ratio_qt_lb": mw.water_grain_ratio_qt_lb,
                "step_classifications": [
                    {
                        "index": s.index,
                        "name": s.name,
                        "type": s.type,
                        "infuse_amount_l": s.infuse_amount_l,
                        "classification": s.classification.value,
                    }
                    for s in mw.step_classifications
                ],
            },
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


# --- SYSTEM CLASSIFICATION ---

def classify_brewing_system(equipment_name, decision: SpargeDecision, recipe_type=""):
    name = (equipment_name or "").lower()
    t = (recipe_type or "").lower()

    if "extract" in t:
        return SystemClassification(SystemType.EXTRACT, is_no_sparge=True, is_extract=True)
    if "partial mash" in t:
        return SystemClassification(SystemType.PARTIAL_MASH, is_no_sparge=True, is_partial_mash=True)

    is_biab = "biab" in name
    is_all_in_one = any(term in name for term in ALL_IN_ONE_TERMS)
    is_no_sparge = "no sparge" in name or is_biab or not decision.uses_sparge

    if is_biab:
        system_type = SystemType.BIAB
    elif is_all_in_one:
        system_type = SystemType.ALL_IN_ONE
    elif is_no_sparge:
        system_type = SystemType.NO_SPARGE
    else:
        system_type = SystemType.TRADITIONAL

    return SystemClassification(
        system_type,
        is_no_sparge=is_no_sparge,
        is_all_in_one=is_all_in_one,
        is_biab=is_biab,
    )


def grain_absorption_rate(equipment_name, decision: SpargeDecision):
    """Returns (qt/lb, label). Grain in a bag or unsparged mash holds more water."""
    name = (equipment_name or "").lower()
    if "biab" in name:
        return GRAIN_ABSORPTION_ALLINONE, "BIAB System"
    if "no sparge" in name:
        return GRAIN_ABSORPTION_ALLINONE, "No-Sparge System"
    if not decision.uses_sparge:
        return GRAIN_ABSORPTION_ALLINONE, "No-Sparge (detected)"
    if any(term in name for term in ALL_IN_ONE_TERMS):
        return GRAIN_ABSORPTION_ALLINONE, "All-in-One System"
    return GRAIN_ABSORPTION_DEFAULT, "Traditional System"


def data_source_priority(boil_off_rate, trub_chiller_loss, evap_rate):
    if boil_off_rate is not None and boil_off_rate > 0:
        return DataSource.BOIL_OFF_RATE
    if trub_chiller_loss is not None and trub_chiller_loss >= 0:
        return DataSource.TRUB_LOSS
    if evap_rate is not None and evap_rate > 0:
        return DataSource.EVAP_RATE
    return DataSource.DEFAULTS


# --- MASH STEPS ---

def find_explicit_sparge_volume(steps):
    for step in steps:
        if step.step_type != StepType.SPARGE:
            continue
        if step.amount:
            return ExplicitSpargeVolume(step.amount, "beerjson_step", step.name or "Sparge")
        if step.infuse_amount:
            return ExplicitSpargeVolume(step.infuse_amount, "beerxml_step", step.name or "Sparge")
    return None


def _first_pass_classification(index, step, uses_sparge):
    if step.water_added > 0:
        if step.step_type == StepType.SPARGE:
            return WaterClassification.SPARGE_WATER
        if step.name and "sparge" in step.name.lower():
            return WaterClassification.SPARGE_WATER_BYNAME
        if index == 0:
            return WaterClassification.STRIKE_WATER
        if step.step_type in (StepType.TEMPERATURE, StepType.INFUSION):
            return WaterClassification.MASH_STEP if uses_sparge else WaterClassification.ADDITIONAL_STRIKE
        if step.step_type == StepType.DECOCTION:
            return WaterClassification.DECOCTION
        return WaterClassification.UNKNOWN_INFUSION

    # No water added
    if step.step_type == StepType.DECOCTION:
        return WaterClassification.DECOCTION
    if step.step_type == StepType.TEMPERATURE:
        return WaterClassification.TEMPERATURE_RAMP
    return WaterClassification.UNKNOWN


def classify_mash_steps(steps, uses_sparge):
    """
    Two passes so a step is counted exactly once.
    First pass labels each step from its own fields; second pass resolves the
    labels that depend on the sparge decision and sums strike and sparge water.
    Returns (strike_l, sparge_l, total_l, classifications).
    """
    first_pass = []
    total_l = 0.0
    for index, step in enumerate(steps):
        total_l += step.water_added
        first_pass.append((index, step, _first_pass_classification(index, step, uses_sparge)))

    strike_l = 0.0
    sparge_l = 0.0
    classifications = []
    for index, step, cls in first_pass:
        amount = step.water_added
        if amount > 0:
            if cls in (WaterClassification.MASH_STEP, WaterClassification.UNKNOWN_INFUSION):
                if uses_sparge:
                    cls = (WaterClassification.SPARGE_WATER_INFERRED if cls == WaterClassification.MASH_STEP
                           else WaterClassification.SPARGE_WATER_UNKNOWN)
                else:
                    cls = WaterClassification.ADDITIONAL_STRIKE

            if cls in STRIKE_CLASSIFICATIONS:
                strike_l += amount
            elif cls in SPARGE_CLASSIFICATIONS:
                sparge_l += amount

        classifications.append(StepClassification(
            index=index,
            name=step.name or f"Step {index + 1}",
            type=step.step_type.value,
            infuse_amount_l=amount,
            classification=cls,
        ))

    return strike_l, sparge_l, total_l, tuple(classifications)


# --- NORMALIZER ---

class InputNormalizer:
    def __init__(self, water_defaults=None):
        water_defaults = water_defaults or {}
        self.boil_time_default = water_defaults.get("boil_time_min", DEFAULT_BOIL_TIME_MIN)
        self.fermenter_loss_default = water_defaults.get("fermenter_loss_l", FERMENTER_LOSS_DEFAULT)
        self.mash_tun_deadspace_default = water_defaults.get("mash_tun_deadspace_l", MASH_TUN_DEADSPACE_DEFAULT)
        self.boil_size_factor = water_defaults.get("boil_size_factor", BOIL_SIZE_FALLBACK_FACTOR)

    def read_recipe(self, recipe: Recipe) -> RecipeReading:
        """Structural checks plus everything that does not depend on the sparge decision."""
        check_recipe_structure(recipe)
        report = ValidationReport()

        boil_time = recipe.boil_time if recipe.boil_time is not None else self.boil_time_default
        # NaN compares False, so it lands in the no-boil branch too
        is_no_boil = not (boil_time > 0)

        batch_size = recipe.batch_size
        boil_size = recipe.boil_size
        if boil_size is None or boil_size <= 0:
            boil_size = batch_size * self.boil_size_factor
            report.add_warning("Boil size not specified, estimated from batch size")

        grain_kg = total_grain_kg(recipe.fermentables)
        recipe_type, type_report = validate_recipe_type(recipe.type, grain_kg)
        report.extend(type_report)

        steps = recipe.mash.steps
        evidence = SpargeEvidence(
            step_types=tuple(s.step_type for s in steps),
            equipment_name=recipe.equipment.name if recipe.equipment else "",
            recipe_type=recipe.type or "",
            sparge_temp=recipe.mash.sparge_temp,
            volume_balance=volume_balance_indicator(
                recipe.batch_size, recipe.boil_size, steps, recipe.fermentables, recipe.type,
            ),
        )

        logger.debug("Read '%s': batch %.2f L, boil %.2f L, %s min", recipe.name, batch_size, boil_size, boil_time)

        return RecipeReading(
            recipe=recipe,
            batch_size_l=batch_size,
            boil_size_l=boil_size,
            boil_time_min=boil_time,
            is_no_boil=is_no_boil,
            recipe_type=recipe_type,
            grain_kg=grain_kg,
            evidence=evidence,
            explicit_sparge_volume=find_explicit_sparge_volume(steps),
            warnings=tuple(report.warnings),
        )

    def normalize(self, reading: RecipeReading, decision: SpargeDecision) -> NormalizedBrewingInputs:
        recipe = reading.recipe
        report = ValidationReport(warnings=list(reading.warnings))

        equipment_profile = recipe.equipment or EquipmentProfile()
        system = classify_brewing_system(equipment_profile.name, decision, recipe.type)

        # --- EQUIPMENT ---
        equipment = self._equipment_data(equipment_profile, system, decision, report)

        # --- GRAIN ---
        grain_lb = BrewMath.kg_to_lb(reading.grain_kg)
        grain_data = GrainData(
            total_weight_kg=reading.grain_kg,
            total_weight_lb=grain_lb,
            displacement_l=BrewMath.grain_displacement_l(grain_lb),
            absorption_l=BrewMath.grain_absorption_l(grain_lb, equipment.grain_absorption_rate_qt_lb),
        )
        if reading.grain_kg <= 0:
            report.add_warning("No grain detected in recipe")

        # --- MASH WATER ---
        mash_water = self._mash_water_data(recipe, decision, reading.explicit_sparge_volume, report)

        if equipment.data_source_priority == DataSource.DEFAULTS:
            report.add_warning("No equipment data found, using defaults")
        if mash_water.total_mash_water_l <= 0 and not mash_water.has_water_grain_ratio:
            report.add_warning("No mash water data found in recipe")
        if abs(reading.boil_size_l - reading.batch_size_l) < BrewMath.batch_tolerance_l(reading.batch_size_l):
            report.add_warning("Boil size and batch size are very similar - check evaporation calculations")

        logger.debug(
            "Normalized '%s': %s, absorption %.3f qt/lb, data source %s",
            recipe.name, system.system_type.value,
            equipment.grain_absorption_rate_qt_lb, equipment.data_source_priority.value,
        )

        return NormalizedBrewingInputs(
            batch_size_l=reading.batch_size_l,
            boil_size_l=reading.boil_size_l,
            boil_time_min=reading.boil_time_min,
            is_no_boil=reading.is_no_boil,
            recipe_type=reading.recipe_type,
            system=system,
            sparge_decision=decision,
            explicit_sparge_volume=reading.explicit_sparge_volume,
            grain_data=grain_data,
            equipment=equipment,
            mash_water_data=mash_water,
            warnings=tuple(report.warnings),
            errors=tuple(report.errors),
        )

    def _equipment_data(self, profile, system, decision, report):
        def volume(value, label, default=0.0):
            if value is None:
                return default
            if value < 0:
                report.add_warning(f"{label} cannot be negative, using 0")
                return 0.0
            return value

        default_deadspace = 0.0 if system.is_no_sparge else self.mash_tun_deadspace_default
        mash_tun_deadspace = volume(profile.mash_tun_deadspace, "Mash tun deadspace", default_deadspace)
        lauter_deadspace = volume(profile.lauter_deadspace, "Lauter deadspace")
        top_up_kettle = volume(profile.top_up_kettle, "Top-up kettle")
        top_up_water = volume(profile.top_up_water, "Top-up water")
        fermenter_loss = volume(profile.fermenter_loss, "Fermenter loss", self.fermenter_loss_default)

        if system.is_no_sparge and mash_tun_deadspace > HIGH_NO_SPARGE_DEADSPACE_L:
            report.add_warning("High mash tun deadspace for no-sparge system - consider reducing")
        if system.is_biab and lauter_deadspace > 0:
            report.add_warning("Lauter deadspace not applicable for BIAB systems")
            lauter_deadspace = 0.0

        if profile.boil_off_rate is not None:
            report.extend(validate_boil_off_rate(profile.boil_off_rate))

        rate, label = grain_absorption_rate(profile.name, decision)

        return EquipmentData(
            name=profile.name or "",
            mash_tun_deadspace_l=mash_tun_deadspace,
            lauter_deadspace_l=lauter_deadspace,
            top_up_kettle_l=top_up_kettle,
            top_up_water_l=top_up_water,
            fermenter_loss_l=fermenter_loss,
            boil_off_rate_l_hr=profile.boil_off_rate,
            evap_rate_pct=profile.evap_rate,
            trub_chiller_loss_l=profile.trub_chiller_loss,
            grain_absorption_rate_qt_lb=rate,
            grain_absorption_system=label,
            data_source_priority=data_source_priority(
                profile.boil_off_rate, profile.trub_chiller_loss, profile.evap_rate,
            ),
        )

    def _mash_water_data(self, recipe, decision, explicit_sparge, report):
        strike_l, sparge_l, total_l, classifications = classify_mash_steps(
            recipe.mash.steps, decision.uses_sparge,
        )

        if explicit_sparge is not None and explicit_sparge.volume_l > 0:
            sparge_l = explicit_sparge.volume_l
            total_l = strike_l + sparge_l

        ratio = recipe.mash.water_grain_ratio
        has_ratio = ratio is not None and ratio > 0
        if has_ratio:
            report.extend(validate_physical_range(
                ratio, 0.0, float("inf"),
                warn_min=WATER_GRAIN_RATIO_MIN, warn_max=WATER_GRAIN_RATIO_MAX,
                unit=" qt/lb", name="Water/grain ratio",
            ))

        return MashWaterData(
            strike_water_l=strike_l,
            sparge_water_l=sparge_l,
            total_mash_water_l=total_l,
            has_water_grain_ratio=has_ratio,
            water_grain_ratio_qt_lb=ratio if has_ratio else 0.0,
            step_classifications=classifications,
        )
