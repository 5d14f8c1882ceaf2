"""
volumebrain
settings_manager.py
"""

import copy
import json
import logging
import os

logger = logging.getLogger(__name__)

DATA_DIR_NAME = "volumebrain-data"
SETTINGS_FILE = "volumebrain_settings.json"

DEFAULT_SETTINGS = {
    "system_settings": {
        "units": "imperial",          # display unit used for flow rounding: imperial | metric
        "log_level": "WARNING",
        "enable_result_cache": False,
    },
    "water_defaults": {
        "boil_time_min": 60.0,
        "fermenter_loss_l": 0.5,
        "mash_tun_deadspace_l": 0.5,  # sparge systems only; no-sparge defaults to 0
        "boil_size_factor": 1.33,
    },
}

VALID_UNITS = ("imperial", "metric")


class SettingsManager:
    """
    JSON-backed settings. Without a base_dir nothing touches the disk.
    """

    def __init__(self, base_dir=None):
        self.base_dir = base_dir
        self.data_dir = None
        self.settings_file = None
        self.settings = {}

        if base_dir is not None:
            self.data_dir = os.path.join(base_dir, DATA_DIR_NAME)
            self.settings_file = os.path.join(self.data_dir, SETTINGS_FILE)
            self._ensure_data_dir()
            self._load_settings()
        else:
            self.settings = copy.deepcopy(DEFAULT_SETTINGS)

    def _ensure_data_dir(self):
        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as e:
            logger.error("Error creating data dir: %s", e)

    def _load_settings(self):
        if not os.path.exists(self.settings_file):
            self.settings = copy.deepcopy(DEFAULT_SETTINGS)
            self._save_settings()
            return

        try:
            with open(self.settings_file, "r", encoding="utf-8") as f:
                self.settings = json.load(f)
            if not isinstance(self.settings, dict):
                raise ValueError("settings root is not an object")
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Error loading settings: %s. Reverting to defaults.", e)
            self.settings = copy.deepcopy(DEFAULT_SETTINGS)
            return

        # Back-fill sections and keys added since the file was written
        defaults = copy.deepcopy(DEFAULT_SETTINGS)
        for section, data in defaults.items():
            if not isinstance(self.settings.get(section), dict):
                self.settings[section] = data
            else:
                for key, val in data.items():
                    self.settings[section].setdefault(key, val)

    def _save_settings(self):
        if self.settings_file is None:
            return
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(self.settings, f, indent=4)
        except OSError as e:
            logger.error("Error saving settings: %s", e)

    # --- GETTERS / SETTERS ---

    def get(self, section, key, default=None):
        return self.settings.get(section, {}).get(key, default)

    def get_section(self, section):
        """Returns the entire dictionary for a section."""
        return self.settings.get(section, {})

    def set(self, section, key, value):
        if section not in self.settings:
            self.settings[section] = {}
        self.settings[section][key] = value
        self._save_settings()

    def override(self, section, key, value):
        """Like set() but never written to disk (command-line overrides)."""
        self.settings.setdefault(section, {})[key] = value

    def get_system_setting(self, key, default=None):
        return self.get("system_settings", key, default)

    def set_system_setting(self, key, value):
        self.set("system_settings", key, value)

    def get_display_units(self):
        units = str(self.get_system_setting("units", "imperial")).lower()
        if units not in VALID_UNITS:
            logger.warning("Unknown display units '%s', using imperial", units)
            return "imperial"
        return units
