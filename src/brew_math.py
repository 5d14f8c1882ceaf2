"""
src/brew_math.py
Named brewing constants and the small pieces of volume math shared by every stage.
"""
import math

# --- UNIT CONVERSIONS ---
L_TO_GAL = 0.264172
KG_TO_LB = 2.20462
QT_TO_L = 0.946353
QT_PER_GAL = 4.0

# --- THERMAL ---
# Hot wort expands ~4% over cold; the same factor is used for post-boil contraction.
THERMAL_EXPANSION = 0.04
THERMAL_CONTRACTION = 0.04
THERMAL_EXPANSION_WARNING_THRESHOLD = 0.1

# --- GRAIN ---
GRAIN_DISPLACEMENT_RATE = 0.08       # gal/lb
GRAIN_ABSORPTION_DEFAULT = 0.125     # qt/lb, traditional lauter systems
GRAIN_ABSORPTION_ALLINONE = 0.325    # qt/lb, BIAB / no-sparge / all-in-one

# --- BOIL-OFF (L/hr) ---
BOIL_OFF_RATE_MIN_L_HR = 1.0
BOIL_OFF_RATE_MAX_L_HR = 8.0
BOIL_OFF_RATE_TYPICAL_L_HR = 3.8
BOIL_OFF_RATE_LIMIT_MIN_L_HR = 0.0
BOIL_OFF_RATE_LIMIT_MAX_L_HR = 20.0
BOIL_OFF_SEARCH_STEP_L_HR = 0.2

# --- LOSSES (L) ---
TRUB_LOSS_MIN = 0.5
TRUB_LOSS_MAX = 4.0
TRUB_LOSS_DEFAULT = 1.5
FERMENTER_LOSS_DEFAULT = 0.5
MASH_TUN_DEADSPACE_DEFAULT = 0.5

# --- SPARGE HEURISTICS ---
# Empirical values; do not tune without brewing-expert sign-off.
STRIKE_RATIO_DEFAULT = 0.65
SPARGE_THRESHOLD_L = 2.0
EXCESS_WATER_THRESHOLD_L = 1.0
VOLUME_BALANCE_LAUTER_LOSS_L = 0.5
MAX_SPARGE_RATIO = 0.75
MIN_STRIKE_RATIO = 0.3
MAX_STRIKE_RATIO = 0.9

# --- TOLERANCES ---
VOLUME_TOLERANCE_L = 0.001
TRUB_LOSS_TOLERANCE_L = 0.05
BATCH_SIZE_TOLERANCE_PERCENT = 0.02
BATCH_SIZE_TOLERANCE_FLOOR_L = 0.1
EVAP_RATE_DISAGREEMENT_PCT = 1.0
FLOW_ADJUSTMENT_WARNING_L = 0.1

# --- RECIPE DEFAULTS ---
DEFAULT_BOIL_TIME_MIN = 60.0
BOIL_SIZE_FALLBACK_FACTOR = 1.33
WATER_GRAIN_RATIO_MIN = 0.5
WATER_GRAIN_RATIO_MAX = 5.0

DISPLAY_DECIMALS = 2


class BrewMath:
    @staticmethod
    def round_half_up(value, decimals=DISPLAY_DECIMALS):
        # Half-up like a calculator display, not Python's banker's rounding
        factor = 10 ** decimals
        return math.floor(value * factor + 0.5) / factor

    @staticmethod
    def round_for_display(liters, units="imperial"):
        """
        Rounds a volume to what the user will see: convert to the display unit,
        round to 2 decimals, convert back to liters.
        """
        if units == "metric":
            return BrewMath.round_half_up(liters)
        gallons = liters * L_TO_GAL
        return BrewMath.round_half_up(gallons) / L_TO_GAL

    @staticmethod
    def thermal_factor(is_no_boil):
        return 1.0 if is_no_boil else 1.0 + THERMAL_EXPANSION

    @staticmethod
    def boil_off_rate_to_percentage(boil_off_rate_l_hr, pre_boil_volume_l):
        if not pre_boil_volume_l or pre_boil_volume_l <= 0:
            return 0.0
        if boil_off_rate_l_hr is None or boil_off_rate_l_hr < 0:
            return 0.0
        return (boil_off_rate_l_hr / pre_boil_volume_l) * 100.0

    @staticmethod
    def percentage_to_boil_off_rate(evap_rate_pct, pre_boil_volume_l):
        if evap_rate_pct is None or evap_rate_pct < 0:
            return 0.0
        if not pre_boil_volume_l or pre_boil_volume_l <= 0:
            return 0.0
        return (evap_rate_pct / 100.0) * pre_boil_volume_l

    @staticmethod
    def kg_to_lb(weight_kg):
        return weight_kg * KG_TO_LB

    @staticmethod
    def grain_displacement_l(grain_lb):
        return (grain_lb * GRAIN_DISPLACEMENT_RATE) / L_TO_GAL

    @staticmethod
    def grain_absorption_l(grain_lb, abs_rate_qt_lb):
        return grain_lb * abs_rate_qt_lb * QT_TO_L

    @staticmethod
    def water_to_grain_ratio(mash_water_l, grain_lb):
        """Returns qt/lb, or 0.0 when there is no grain or no mash water."""
        if grain_lb <= 0 or mash_water_l <= 0:
            return 0.0
        mash_water_qt = mash_water_l * L_TO_GAL * QT_PER_GAL
        return mash_water_qt / grain_lb

    @staticmethod
    def batch_tolerance_l(batch_size_l):
        return max(BATCH_SIZE_TOLERANCE_FLOOR_L, batch_size_l * BATCH_SIZE_TOLERANCE_PERCENT)
