from __future__ import annotations

import logging
from threading import RLock
from typing import Any

from .constants import DEFAULT_SAMPLE_INTERVAL_MS, HIGH_ACCURACY_MIN_BATTERY, SETTINGS_STORAGE_KEY
from .errors import PersistenceError
from .json_utils import safe_json_dumps, safe_json_loads
from .kv_store import KeyValueStore

LOGGER = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, bool] = {
    "batteryOptimization": True,
    "highAccuracy": False,
    "autoSave": True,
}


def _sanitize_settings(raw: dict[str, Any]) -> dict[str, bool]:
    """Keep only known boolean keys; anything else is ignored."""
    clean: dict[str, bool] = {}
    for key in DEFAULT_SETTINGS:
        value = raw.get(key)
        if isinstance(value, bool):
            clean[key] = value
        elif value is not None:
            LOGGER.warning("Ignoring non-boolean setting %s=%r", key, value)
    return clean


class SettingsStore:
    """User preferences persisted as one JSON object under ``appSettings``."""

    def __init__(self, kv: KeyValueStore, *, key: str = SETTINGS_STORAGE_KEY) -> None:
        self._kv = kv
        self._key = key
        self._lock = RLock()
        self._settings: dict[str, bool] = dict(DEFAULT_SETTINGS)

    # -- persistence -----------------------------------------------------------

    def load(self) -> dict[str, bool]:
        try:
            raw = self._kv.get(self._key)
        except Exception:
            LOGGER.warning("Could not read settings; using defaults", exc_info=True)
            raw = None
        parsed = safe_json_loads(raw, context="settings")
        with self._lock:
            self._settings = dict(DEFAULT_SETTINGS)
            if isinstance(parsed, dict):
                self._settings.update(_sanitize_settings(parsed))
            elif parsed is not None:
                LOGGER.warning("Stored settings are not an object; using defaults")
            return dict(self._settings)

    def snapshot(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._settings)

    def update(self, data: dict[str, Any], *, battery_level: float | None = None) -> dict[str, bool]:
        """Merge *data* into the current settings and persist the result.

        Unknown keys and non-boolean values are ignored.  The in-memory
        settings only change once the write succeeds.
        """
        with self._lock:
            updated = dict(self._settings)
            updated.update(_sanitize_settings(data))
            if updated == self._settings:
                return dict(self._settings)
            try:
                self._kv.set(self._key, safe_json_dumps(updated))
            except PersistenceError:
                raise
            except Exception as exc:
                raise PersistenceError(f"Could not save settings: {exc}") from exc
            turned_on_accuracy = updated["highAccuracy"] and not self._settings["highAccuracy"]
            self._settings = updated
        if (
            turned_on_accuracy
            and battery_level is not None
            and battery_level < HIGH_ACCURACY_MIN_BATTERY
        ):
            LOGGER.warning(
                "High accuracy enabled with battery at %.0f%%; expect faster drain",
                battery_level * 100.0,
            )
        LOGGER.info("Settings updated: %s", updated)
        return dict(updated)

    # -- derived values --------------------------------------------------------

    @property
    def auto_save(self) -> bool:
        with self._lock:
            return self._settings["autoSave"]

    @property
    def high_accuracy(self) -> bool:
        with self._lock:
            return self._settings["highAccuracy"]

    @property
    def battery_optimization(self) -> bool:
        with self._lock:
            return self._settings["batteryOptimization"]

    def effective_sample_interval_ms(self, base_ms: int = DEFAULT_SAMPLE_INTERVAL_MS) -> int:
        """High accuracy samples twice as fast; battery optimization half as fast."""
        with self._lock:
            if self._settings["highAccuracy"]:
                return max(1, int(base_ms) // 2)
            if self._settings["batteryOptimization"]:
                return int(base_ms) * 2
            return int(base_ms)
