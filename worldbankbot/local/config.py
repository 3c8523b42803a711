import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import worldbankbot.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    Merges default settings with JSON overrides.

    This class provides a unified, attribute-based access point for all
    service configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """
        Initializes the settings object by loading defaults and overrides.

        :param overrides_path: Alternative overrides file, mainly for tests.
        """
        self._load_defaults()
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)
        self._load_overrides()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the `overrides.json` file.

        Only keys listed in `MODIFIABLE_SETTINGS` are applied.
        """
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue
            try:
                value = self._coerce_value(key, value)
            except (TypeError, ValueError) as e:
                log.warning(f"Invalid override for '{key}' ({value!r}): {e} Ignoring.")
                continue
            setattr(self, key, value)
            log.debug(f"Overridden setting: {key} = {value}")

    def get(self, key: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return getattr(self, key, default)

    def _coerce_value(self, key: str, value: Any) -> Any:
        """
        Converts `value` to the type of the setting's default and checks its range.

        Only settings whose default is None may be unset.

        :raises ValueError: If the value cannot be converted or is negative.
        """
        default_value = getattr(default_settings, key, None)
        if value is None or (isinstance(value, str) and value.lower() in ("none", "null", "")):
            if default_value is not None:
                raise ValueError(f"'{key}' cannot be unset.")
            return None

        target_type = float if default_value is None else type(default_value)
        if target_type is int and isinstance(value, float) and not value.is_integer():
            raise ValueError(f"'{key}' must be a whole number.")
        new_value = target_type(value)
        if new_value < 0:
            raise ValueError(f"'{key}' must not be negative.")
        return new_value

    def update_setting(self, key: str, raw_value: str) -> Any:
        """
        Coerces a raw string to the type of the setting's default and applies it.

        :param key: An uppercase setting name from `MODIFIABLE_SETTINGS`.
        :param raw_value: The value as typed by the operator.
        :return: The coerced value.
        :raises KeyError: If the setting is not modifiable.
        :raises ValueError: If the value cannot be converted or is out of range.
        """
        if key not in self.MODIFIABLE_SETTINGS:
            raise KeyError(f"Setting '{key}' is not modifiable.")

        new_value = self._coerce_value(key, raw_value)
        setattr(self, key, new_value)
        return new_value

    def save_overrides(self, overrides_to_save: Optional[Dict[str, Any]] = None) -> None:
        """
        Saves modifiable settings to the overrides JSON file.

        :param overrides_to_save: Settings to persist. Defaults to the current
            value of every modifiable setting.
        """
        if overrides_to_save is None:
            overrides_to_save = {key: getattr(self, key) for key in self.MODIFIABLE_SETTINGS}

        filtered_overrides = {
            key: value
            for key, value in overrides_to_save.items()
            if key in self.MODIFIABLE_SETTINGS
        }

        if not filtered_overrides:
            log.warning("No modifiable settings provided to save.")
            return

        try:
            self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
            with self.OVERRIDES_JSON_PATH.open('w') as f:
                json.dump(filtered_overrides, f, indent=4, sort_keys=True)
            log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")
        except IOError as e:
            log.error(f"Failed to write to overrides file '{self.OVERRIDES_JSON_PATH}': {e}")

# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
