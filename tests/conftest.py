"""
Shared recipe fixtures. Volumes are litres, weights kilograms.
"""

import copy

import pytest

from input_normalizer import InputNormalizer
from profile_data import Recipe
from sparge_classifier import classify_sparge_usage
from water_volume_manager import WaterVolumeManager


TRADITIONAL_RECIPE = {
    "name": "House Pale Ale",
    "type": "All Grain",
    "batch_size": 19.0,
    "boil_size": 25.0,
    "boil_time": 60,
    "fermentables": [
        {"name": "Pale Malt", "type": "Grain", "amount": 4.0},
        {"name": "Crystal 40", "type": "Grain", "amount": 0.5},
    ],
    "mash": {
        "name": "Single Infusion",
        "steps": [
            {"name": "Mash In", "type": "infusion", "infuse_amount": 14.0, "step_temp": 66.0},
        ],
    },
    "equipment": {
        "name": "Three Vessel Home Brewery",
        "boil_off_rate": 3.8,
        "mash_tun_deadspace": 0.5,
        "trub_chiller_loss": 1.0,
        "fermenter_loss": 0.5,
    },
}

BIAB_RECIPE = {
    "name": "BIAB Saison",
    "type": "All Grain",
    "batchSize": 19.0,
    "boilSize": 25.0,
    "boilTime": 60,
    "ingredients": {
        "fermentables": [
            {"name": "Pilsner Malt", "type": "Base Malt", "amount": 4.0},
        ],
    },
    "mash": {
        "steps": [
            {"name": "Full Volume Mash", "type": "infusion", "infuseAmount": 28.0},
        ],
    },
    "equipment": {
        "name": "BIAB 10 gal Kettle",
        "boilOffRate": 3.5,
    },
}

NO_BOIL_RECIPE = {
    "name": "No-Boil Berliner",
    "type": "All Grain",
    "batch_size": 19.0,
    "boil_size": 21.0,
    "boil_time": 0,
    "fermentables": [{"name": "Wheat Malt", "type": "Grain", "amount": 3.0}],
    "mash": {"steps": [{"name": "Mash In", "type": "infusion", "infuse_amount": 16.0}]},
    "equipment": {"name": "Kettle", "trub_chiller_loss": 1.0, "top_up_water": 0.0},
}


@pytest.fixture
def traditional_recipe():
    return copy.deepcopy(TRADITIONAL_RECIPE)


@pytest.fixture
def biab_recipe():
    return copy.deepcopy(BIAB_RECIPE)


@pytest.fixture
def no_boil_recipe():
    return copy.deepcopy(NO_BOIL_RECIPE)


@pytest.fixture
def build_recipe():
    """Traditional recipe with the equipment block replaced and top-level fields overridden."""
    def _build(equipment=None, **fields):
        data = copy.deepcopy(TRADITIONAL_RECIPE)
        if equipment is None:
            data.pop("equipment")
        else:
            data["equipment"] = dict(equipment, name=equipment.get("name", "Home Brewery"))
        data.update(fields)
        return data
    return _build


@pytest.fixture
def normalize():
    """Runs read_recipe -> classifier -> normalize on a recipe dict."""
    normalizer = InputNormalizer()

    def _normalize(recipe_dict):
        reading = normalizer.read_recipe(Recipe.from_dict(recipe_dict))
        decision = classify_sparge_usage(reading.evidence)
        return normalizer.normalize(reading, decision)
    return _normalize


@pytest.fixture
def manager():
    return WaterVolumeManager()
