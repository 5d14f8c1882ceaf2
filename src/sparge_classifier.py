"""
src/sparge_classifier.py
Decides whether a recipe uses sparge water by folding ranked indicators.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from brew_math import (
    BrewMath,
    EXCESS_WATER_THRESHOLD_L,
    GRAIN_ABSORPTION_DEFAULT,
    SPARGE_THRESHOLD_L,
    THERMAL_EXPANSION,
    VOLUME_BALANCE_LAUTER_LOSS_L,
)
from profile_data import Confidence, StepType, total_grain_kg

logger = logging.getLogger(__name__)

ALL_IN_ONE_TERMS = ("all in one", "grainfather", "foundry", "brewzilla")
NO_SPARGE_TERMS = ("no sparge", "biab")


class IndicatorKind(Enum):
    EXPLICIT = "explicit"
    EQUIPMENT = "equipment"
    VOLUME_BALANCE = "volume_balance"
    TEMPERATURE = "temperature"
    RECIPE_TYPE = "recipe_type"


# Most trusted first. The first present indicator decides.
PRIORITY_ORDER = (
    IndicatorKind.EXPLICIT,
    IndicatorKind.EQUIPMENT,
    IndicatorKind.VOLUME_BALANCE,
    IndicatorKind.TEMPERATURE,
    IndicatorKind.RECIPE_TYPE,
)


@dataclass(frozen=True)
class SpargeIndicator:
    kind: IndicatorKind
    uses_sparge: bool
    confidence: Confidence
    source: str
    analysis: Optional[dict] = None

    def describe(self):
        verdict = "uses" if self.uses_sparge else "no"
        return f"{self.kind.value}: {verdict} sparge ({self.confidence.value})"


@dataclass(frozen=True)
class SpargeEvidence:
    """Raw, decision-independent signals gathered from the recipe."""
    step_types: Tuple[StepType, ...] = ()
    equipment_name: str = ""
    recipe_type: str = ""
    sparge_temp: Optional[float] = None
    volume_balance: Optional[SpargeIndicator] = None


@dataclass(frozen=True)
class SpargeDecision:
    uses_sparge: bool
    confidence: Confidence
    method: str
    conflicts: Tuple[str, ...] = ()
    evidence: Tuple[str, ...] = ()
    details: Tuple[str, ...] = ()
    indicators: Tuple[SpargeIndicator, ...] = field(default=(), compare=False)

    @property
    def summary(self):
        verb = "Uses" if self.uses_sparge else "Does not use"
        return f"{verb} sparge ({self.confidence.value} confidence via {self.method})"

    def to_dict(self):
        return {
            "uses_sparge": self.uses_sparge,
            "confidence": self.confidence.value,
            "method": self.method,
            "conflicts": list(self.conflicts),
            "evidence": list(self.evidence),
            "details": list(self.details),
            "summary": self.summary,
        }


# --- INDIVIDUAL INDICATORS ---

def explicit_indicator(step_types):
    if StepType.SPARGE in step_types:
        return SpargeIndicator(IndicatorKind.EXPLICIT, True, Confidence.HIGH, "beerjson_step")
    return None


def equipment_indicator(equipment_name):
    name = (equipment_name or "").lower()
    if any(term in name for term in NO_SPARGE_TERMS):
        return SpargeIndicator(IndicatorKind.EQUIPMENT, False, Confidence.HIGH, "equipment_profile")
    if any(term in name for term in ALL_IN_ONE_TERMS):
        return SpargeIndicator(IndicatorKind.EQUIPMENT, False, Confidence.MEDIUM, "equipment_allinone")
    return None


def temperature_indicator(sparge_temp):
    if sparge_temp is not None and sparge_temp > 0:
        return SpargeIndicator(IndicatorKind.TEMPERATURE, True, Confidence.MEDIUM, "sparge_temp")
    return None


def recipe_type_indicator(recipe_type):
    t = (recipe_type or "").lower()
    if "extract" in t:
        return SpargeIndicator(IndicatorKind.RECIPE_TYPE, False, Confidence.MEDIUM, "extract_recipe")
    if "partial mash" in t:
        return SpargeIndicator(IndicatorKind.RECIPE_TYPE, False, Confidence.LOW, "partial_mash")
    if "all grain" in t:
        return SpargeIndicator(IndicatorKind.RECIPE_TYPE, True, Confidence.LOW, "allgrain_default")
    return None


def volume_balance_indicator(batch_size, boil_size, steps, fermentables, recipe_type=None):
    """
    Compares what the first infusion can deliver to the kettle (hot) against the
    declared boil size. A large shortfall means sparge water must make up the rest.
    Returns None when the recipe does not carry enough data to tell.
    """
    if not batch_size or not boil_size or fermentables is None:
        return None

    t = (recipe_type or "").lower()
    if "extract" in t or "partial mash" in t:
        return None

    strike_l = 0.0
    for step in steps or []:
        if step.infuse_amount and step.infuse_amount > 0:
            strike_l = step.infuse_amount
            break
    if strike_l <= 0:
        return None

    # Only typed solid fermentables here; untyped ones are not assumed to be grain
    grain_lb = BrewMath.kg_to_lb(total_grain_kg(fermentables, untyped_as_grain=False))
    absorption_l = BrewMath.grain_absorption_l(grain_lb, GRAIN_ABSORPTION_DEFAULT)

    from_strike_l = strike_l - absorption_l - VOLUME_BALANCE_LAUTER_LOSS_L
    from_strike_hot_l = from_strike_l * (1.0 + THERMAL_EXPANSION)
    shortfall_l = boil_size - from_strike_hot_l

    analysis = {
        "strike_water_l": strike_l,
        "volume_from_strike_l": from_strike_hot_l,
        "target_pre_boil_l": boil_size,
        "shortfall_l": shortfall_l,
    }

    if shortfall_l > SPARGE_THRESHOLD_L:
        return SpargeIndicator(IndicatorKind.VOLUME_BALANCE, True, Confidence.HIGH,
                               "volume_balance_deficit", analysis)
    if shortfall_l < -EXCESS_WATER_THRESHOLD_L:
        return SpargeIndicator(IndicatorKind.VOLUME_BALANCE, False, Confidence.HIGH,
                               "volume_balance_excess", analysis)
    return SpargeIndicator(IndicatorKind.VOLUME_BALANCE, shortfall_l > 0, Confidence.MEDIUM,
                           "volume_balance_marginal", analysis)


# --- RESOLUTION ---

def gather_indicators(evidence: SpargeEvidence) -> List[SpargeIndicator]:
    """Present indicators in priority order."""
    by_kind = {
        IndicatorKind.EXPLICIT: explicit_indicator(evidence.step_types),
        IndicatorKind.EQUIPMENT: equipment_indicator(evidence.equipment_name),
        IndicatorKind.VOLUME_BALANCE: evidence.volume_balance,
        IndicatorKind.TEMPERATURE: temperature_indicator(evidence.sparge_temp),
        IndicatorKind.RECIPE_TYPE: recipe_type_indicator(evidence.recipe_type),
    }
    return [by_kind[kind] for kind in PRIORITY_ORDER if by_kind[kind] is not None]


def resolve_indicators(indicators) -> SpargeDecision:
    ordered = sorted(indicators, key=lambda ind: PRIORITY_ORDER.index(ind.kind))

    decision = None
    conflicts = []
    evidence = []
    for ind in ordered:
        evidence.append(ind.describe())
        if decision is None:
            decision = ind
        elif ind.uses_sparge != decision.uses_sparge:
            conflicts.append(f"{ind.kind.value} conflicts with previous decision")

    if decision is None:
        return SpargeDecision(
            uses_sparge=False,
            confidence=Confidence.UNKNOWN,
            method="no_data",
            evidence=("No sparge indicators found",),
            details=("Decision based on: no_data",),
        )

    if conflicts:
        details = (f"Conflicts detected: {', '.join(conflicts)}",)
    else:
        details = (f"Decision based on: {decision.source}",)

    return SpargeDecision(
        uses_sparge=decision.uses_sparge,
        confidence=decision.confidence,
        method=decision.source,
        conflicts=tuple(conflicts),
        evidence=tuple(evidence),
        details=details,
        indicators=tuple(ordered),
    )


def classify_sparge_usage(evidence: SpargeEvidence) -> SpargeDecision:
    indicators = gather_indicators(evidence)
    for ind in indicators:
        logger.debug("indicator %s", ind.describe())

    decision = resolve_indicators(indicators)
    logger.info("%s", decision.summary)
    for conflict in decision.conflicts:
        logger.info("Sparge indicator conflict: %s", conflict)
    return decision
