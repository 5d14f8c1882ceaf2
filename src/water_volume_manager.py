"""
volumebrain/src/water_volume_manager.py
Runs the water volume stages in order for one recipe.
"""
import hashlib
import json
import logging

from brew_errors import BrewCalculationError, CalculationError, ValidationError
from evaporation_solver import solve_evaporation
from input_normalizer import InputNormalizer
from profile_data import CalculationStage, Recipe
from result_assembler import assemble_result
from settings_manager import SettingsManager
from sparge_classifier import classify_sparge_usage
from sparge_estimator import estimate_sparge_volume
from volume_flow import build_flow_inputs, calculate_volume_flow
from water_requirements import calculate_water_requirements

logger = logging.getLogger(__name__)

STAGE_ORDER = list(CalculationStage)


def fingerprint(inputs, units):
    """SHA-256 of the full normalized inputs plus the display unit."""
    payload = json.dumps({"inputs": inputs.to_dict(), "units": units}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class WaterVolumeManager:
    def __init__(self, settings_manager=None):
        self.settings = settings_manager or SettingsManager()
        self.normalizer = InputNormalizer(self.settings.get_section("water_defaults"))
        self.status = CalculationStage.IDLE
        self.last_error = None
        self._cache = {}

    @property
    def cache_enabled(self):
        return bool(self.settings.get_system_setting("enable_result_cache", False))

    @property
    def cache_size(self):
        return len(self._cache)

    def clear_cache(self):
        self._cache.clear()
        logger.debug("Result cache cleared")

    def _run_stage(self, stage, func, *args):
        # Stages only ever move forward; repeating the current one is allowed
        if STAGE_ORDER.index(stage) < STAGE_ORDER.index(self.status):
            raise CalculationError(
                f"Stage {stage.value} cannot run after {self.status.value}",
                details={"stage": stage.value, "status": self.status.value},
                recoverable=False,
            )
        self.status = stage
        try:
            return func(*args)
        except BrewCalculationError as e:
            self.last_error = e
            logger.warning("[%s] %s", stage.value, e)
            raise
        except Exception as e:
            wrapped = CalculationError(
                f"Water volume calculation failed during {stage.value}: {e}",
                details={"stage": stage.value, "original_error": repr(e)},
            )
            self.last_error = wrapped
            logger.error("[%s] %s", stage.value, wrapped)
            raise wrapped from e

    def calculate(self, recipe):
        """
        Accepts a Recipe or a recipe dict and returns a WaterVolumeResult.
        Raises RecipeStructureError for recipes the engine cannot work with and
        CalculationError when a stage fails unexpectedly.
        """
        self.status = CalculationStage.IDLE
        self.last_error = None

        if isinstance(recipe, dict):
            recipe = self._run_stage(CalculationStage.NORMALIZING, Recipe.from_dict, recipe)
        elif not isinstance(recipe, Recipe):
            self.last_error = ValidationError(
                "Recipe data is required and must be an object",
                user_message="Invalid recipe data provided for water calculations.",
                details={"input_type": type(recipe).__name__},
            )
            raise self.last_error

        units = self.settings.get_display_units()

        reading = self._run_stage(CalculationStage.NORMALIZING, self.normalizer.read_recipe, recipe)
        decision = self._run_stage(CalculationStage.CLASSIFYING, classify_sparge_usage, reading.evidence)
        inputs = self._run_stage(CalculationStage.CLASSIFYING, self.normalizer.normalize, reading, decision)

        key = None
        if self.cache_enabled:
            key = fingerprint(inputs, units)
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for '%s' (%s)", recipe.name, key[:12])
                self.status = CalculationStage.COMPLETED
                return cached

        evaporation = self._run_stage(CalculationStage.EVAPORATION, solve_evaporation, inputs)
        requirements = self._run_stage(
            CalculationStage.WATER_REQUIREMENTS, calculate_water_requirements, inputs, evaporation,
        )
        flow = self._run_stage(
            CalculationStage.VOLUME_FLOW,
            lambda: calculate_volume_flow(build_flow_inputs(inputs, evaporation, requirements), units),
        )
        sparge_estimate = self._run_stage(
            CalculationStage.SPARGE_ESTIMATE, estimate_sparge_volume, inputs, requirements,
        )
        result = self._run_stage(
            CalculationStage.ASSEMBLING, assemble_result, inputs, evaporation, requirements, flow, sparge_estimate,
        )

        self.status = CalculationStage.COMPLETED
        if key is not None:
            self._cache[key] = result

        logger.info("Calculated '%s': %s", recipe.name, result.summary)
        return result
