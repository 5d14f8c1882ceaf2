"""
src/profile_data.py
Recipe data model consumed by the water volume engine, plus the shared enums.
"""
from enum import Enum


class StepType(Enum):
    INFUSION = "infusion"
    TEMPERATURE = "temperature"
    DECOCTION = "decoction"
    SPARGE = "sparge"
    UNKNOWN = "unknown"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


class DataSource(Enum):
    """Which equipment measurement the evaporation solver trusts, best first."""
    BOIL_OFF_RATE = "boil_off_rate"
    TRUB_LOSS = "trub_loss"
    EVAP_RATE = "evap_rate"
    DEFAULTS = "defaults"


class SystemType(Enum):
    EXTRACT = "extract"
    PARTIAL_MASH = "partial_mash"
    BIAB = "biab"
    ALL_IN_ONE = "all-in-one"
    NO_SPARGE = "no-sparge"
    TRADITIONAL = "traditional"


class WaterClassification(Enum):
    STRIKE_WATER = "strike_water"
    ADDITIONAL_STRIKE = "additional_strike"
    SPARGE_WATER = "sparge_water"
    SPARGE_WATER_BYNAME = "sparge_water_byname"
    SPARGE_WATER_INFERRED = "sparge_water_inferred"
    SPARGE_WATER_UNKNOWN = "sparge_water_unknown"
    MASH_STEP = "mash_step"
    DECOCTION = "decoction"
    TEMPERATURE_RAMP = "temperature_ramp"
    UNKNOWN_INFUSION = "unknown_infusion"
    UNKNOWN = "unknown"


class CalculationStage(Enum):
    IDLE = "IDLE"
    NORMALIZING = "NORMALIZING"
    CLASSIFYING = "CLASSIFYING"
    EVAPORATION = "EVAPORATION"
    WATER_REQUIREMENTS = "WATER_REQUIREMENTS"
    VOLUME_FLOW = "VOLUME_FLOW"
    SPARGE_ESTIMATE = "SPARGE_ESTIMATE"
    ASSEMBLING = "ASSEMBLING"
    COMPLETED = "COMPLETED"


# Field names differ between BeerXML, BeerJSON and hand-written JSON.
# Each tuple is tried in order; the first key present with a non-None value wins.
BATCH_SIZE_KEYS = ("batch_size", "batchSize", "BATCH_SIZE")
BOIL_SIZE_KEYS = ("boil_size", "boilSize", "BOIL_SIZE")
BOIL_TIME_KEYS = ("boil_time", "boilTime", "BOIL_TIME")
BOIL_OFF_RATE_KEYS = ("boil_off_rate", "boilOffRate", "BOIL_OFF_RATE")
EVAP_RATE_KEYS = ("evap_rate", "evapRate", "EVAP_RATE")
TRUB_LOSS_KEYS = ("trub_chiller_loss", "trubChillerLoss", "TRUB_CHILLER_LOSS")
MASH_TUN_DEADSPACE_KEYS = ("mash_tun_deadspace", "mashTunDeadspace", "MASH_TUN_DEADSPACE")
LAUTER_DEADSPACE_KEYS = ("lauter_deadspace", "lauterDeadspace", "LAUTER_DEADSPACE")
TOP_UP_KETTLE_KEYS = ("top_up_kettle", "topUpKettle", "TOP_UP_KETTLE")
TOP_UP_WATER_KEYS = ("top_up_water", "topUpWater", "TOP_UP_WATER")
FERMENTER_LOSS_KEYS = ("fermenter_loss", "fermenterLoss", "FERMENTER_LOSS")
INFUSE_AMOUNT_KEYS = ("infuse_amount", "infuseAmount", "INFUSE_AMOUNT")
SPARGE_TEMP_KEYS = ("sparge_temp", "spargeTemp", "SPARGE_TEMP")
WATER_GRAIN_RATIO_KEYS = ("water_grain_ratio", "waterGrainRatio")


def _first(data, keys):
    for key in keys:
        val = data.get(key)
        if val is not None:
            return val
    return None


def _number(data, keys):
    val = _first(data, keys)
    return None if val is None else float(val)


SOLID_FERMENTABLE_TYPES = ("grain", "adjunct", "specialty", "base malt", "specialty malt")


class Fermentable:
    def __init__(self, name="Fermentable", type=None, amount=0.0):
        self.name = name
        self.type = type
        self.amount = amount  # kg

    def is_solid(self, untyped_as_grain=True):
        """Solid fermentables absorb water in the mash; extracts and sugars do not."""
        if not self.type:
            return untyped_as_grain
        t = self.type.lower()
        return t in SOLID_FERMENTABLE_TYPES or "malt" in t or "grain" in t

    def to_dict(self):
        return {"name": self.name, "type": self.type, "amount": self.amount}

    @classmethod
    def from_dict(cls, data):
        amount = _number(data, ("amount", "AMOUNT"))
        return cls(
            name=data.get("name", data.get("NAME", "Fermentable")),
            type=data.get("type", data.get("TYPE")),
            amount=amount if amount is not None else 0.0,
        )


def total_grain_kg(fermentables, untyped_as_grain=True):
    total = 0.0
    for f in fermentables or []:
        if f.amount and f.amount > 0 and f.is_solid(untyped_as_grain):
            total += f.amount
    return total


class MashStep:
    def __init__(self, name=None, step_type=StepType.UNKNOWN, infuse_amount=None,
                 amount=None, step_temp=None):
        self.name = name
        self.step_type = step_type
        self.infuse_amount = infuse_amount  # L, BeerXML infusion
        self.amount = amount                # L, BeerJSON step amount
        self.step_temp = step_temp

    @property
    def water_added(self):
        return self.infuse_amount if self.infuse_amount and self.infuse_amount > 0 else 0.0

    def to_dict(self):
        return {
            "name": self.name,
            "type": self.step_type.value,
            "infuse_amount": self.infuse_amount,
            "amount": self.amount,
            "step_temp": self.step_temp,
        }

    @classmethod
    def from_dict(cls, data):
        st_str = str(data.get("type", data.get("TYPE", "unknown")) or "unknown").lower()
        try:
            st_enum = StepType(st_str)
        except ValueError:
            st_enum = StepType.UNKNOWN

        return cls(
            name=data.get("name", data.get("NAME")),
            step_type=st_enum,
            infuse_amount=_number(data, INFUSE_AMOUNT_KEYS),
            amount=_number(data, ("amount",)),
            step_temp=_number(data, ("step_temp", "stepTemp", "STEP_TEMP")),
        )


class MashProfile:
    def __init__(self, name="Mash", steps=None, sparge_temp=None, water_grain_ratio=None):
        self.name = name
        self.steps = steps if steps else []
        self.sparge_temp = sparge_temp
        self.water_grain_ratio = water_grain_ratio  # qt/lb

    def to_dict(self):
        return {
            "name": self.name,
            "sparge_temp": self.sparge_temp,
            "water_grain_ratio": self.water_grain_ratio,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data):
        raw_steps = _first(data, ("steps", "mash_steps", "MASH_STEPS")) or []
        steps = [MashStep.from_dict(s) for s in raw_steps if isinstance(s, dict)]

        # --- BACKWARD COMPATIBILITY LOGIC ---
        # Some exporters store the water/grain ratio (qt/lb) in tunSpecificHeat.
        ratio = _number(data, WATER_GRAIN_RATIO_KEYS)
        if ratio is None:
            legacy = _number(data, ("tun_specific_heat", "tunSpecificHeat"))
            if legacy is not None and 0.5 < legacy < 5:
                ratio = legacy

        return cls(
            name=data.get("name", "Mash"),
            steps=steps,
            sparge_temp=_number(data, SPARGE_TEMP_KEYS),
            water_grain_ratio=ratio,
        )


class EquipmentProfile:
    """Every numeric field is None when the recipe did not declare it."""

    def __init__(self, name="", boil_off_rate=None, evap_rate=None, trub_chiller_loss=None,
                 mash_tun_deadspace=None, lauter_deadspace=None, top_up_kettle=None,
                 top_up_water=None, fermenter_loss=None):
        self.name = name
        self.boil_off_rate = boil_off_rate            # L/hr
        self.evap_rate = evap_rate                    # %/hr of boil size
        self.trub_chiller_loss = trub_chiller_loss    # L
        self.mash_tun_deadspace = mash_tun_deadspace  # L
        self.lauter_deadspace = lauter_deadspace      # L
        self.top_up_kettle = top_up_kettle            # L
        self.top_up_water = top_up_water              # L
        self.fermenter_loss = fermenter_loss          # L

    def to_dict(self):
        return {
            "name": self.name,
            "boil_off_rate": self.boil_off_rate,
            "evap_rate": self.evap_rate,
            "trub_chiller_loss": self.trub_chiller_loss,
            "mash_tun_deadspace": self.mash_tun_deadspace,
            "lauter_deadspace": self.lauter_deadspace,
            "top_up_kettle": self.top_up_kettle,
            "top_up_water": self.top_up_water,
            "fermenter_loss": self.fermenter_loss,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get("name", data.get("NAME", "")) or "",
            boil_off_rate=_number(data, BOIL_OFF_RATE_KEYS),
            evap_rate=_number(data, EVAP_RATE_KEYS),
            trub_chiller_loss=_number(data, TRUB_LOSS_KEYS),
            mash_tun_deadspace=_number(data, MASH_TUN_DEADSPACE_KEYS),
            lauter_deadspace=_number(data, LAUTER_DEADSPACE_KEYS),
            top_up_kettle=_number(data, TOP_UP_KETTLE_KEYS),
            top_up_water=_number(data, TOP_UP_WATER_KEYS),
            fermenter_loss=_number(data, FERMENTER_LOSS_KEYS),
        )


class Recipe:
    def __init__(self, name="New Recipe", type=None, batch_size=None, boil_size=None,
                 boil_time=None, fermentables=None, mash=None, equipment=None):
        self.name = name
        self.type = type
        self.batch_size = batch_size  # L
        self.boil_size = boil_size    # L
        self.boil_time = boil_time    # min
        # None means the collection is missing entirely, which is a structural error
        self.fermentables = fermentables
        self.mash = mash
        self.equipment = equipment

    def to_dict(self):
        return {
            "name": self.name,
            "type": self.type,
            "batch_size": self.batch_size,
            "boil_size": self.boil_size,
            "boil_time": self.boil_time,
            "fermentables": None if self.fermentables is None else [f.to_dict() for f in self.fermentables],
            "mash": None if self.mash is None else self.mash.to_dict(),
            "equipment": None if self.equipment is None else self.equipment.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        # BeerJSON nests fermentables under "ingredients"
        ingredients = data.get("ingredients") or {}
        raw_ferms = data.get("fermentables", ingredients.get("fermentables"))
        fermentables = None
        if raw_ferms is not None:
            fermentables = [Fermentable.from_dict(f) for f in raw_ferms if isinstance(f, dict)]

        raw_mash = data.get("mash")
        mash = MashProfile.from_dict(raw_mash) if isinstance(raw_mash, dict) else None

        raw_equipment = data.get("equipment")
        equipment = EquipmentProfile.from_dict(raw_equipment) if isinstance(raw_equipment, dict) else None

        return cls(
            name=data.get("name", "New Recipe"),
            type=data.get("type"),
            batch_size=_number(data, BATCH_SIZE_KEYS),
            boil_size=_number(data, BOIL_SIZE_KEYS),
            boil_time=_number(data, BOIL_TIME_KEYS),
            fermentables=fermentables,
            mash=mash,
            equipment=equipment,
        )
