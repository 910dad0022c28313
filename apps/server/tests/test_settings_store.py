from __future__ import annotations

import json
import logging

import pytest
from conftest import FlakyKeyValueStore

from workoutmonitor.errors import PersistenceError
from workoutmonitor.kv_store import InMemoryKeyValueStore
from workoutmonitor.settings_store import DEFAULT_SETTINGS, SettingsStore


def test_defaults_when_nothing_stored() -> None:
    store = SettingsStore(InMemoryKeyValueStore())
    assert store.load() == DEFAULT_SETTINGS
    assert store.auto_save is True
    assert store.battery_optimization is True
    assert store.high_accuracy is False


@pytest.mark.parametrize("raw", [b"not json", b"[1, 2]"])
def test_corrupt_settings_fall_back_to_defaults(raw: bytes) -> None:
    store = SettingsStore(InMemoryKeyValueStore({"appSettings": raw}))
    assert store.load() == DEFAULT_SETTINGS


def test_load_ignores_unknown_and_non_boolean_values() -> None:
    raw = json.dumps({"autoSave": False, "highAccuracy": "yes", "theme": "dark"}).encode()
    store = SettingsStore(InMemoryKeyValueStore({"appSettings": raw}))
    assert store.load() == {**DEFAULT_SETTINGS, "autoSave": False}


def test_update_persists_under_settings_key() -> None:
    kv = InMemoryKeyValueStore()
    store = SettingsStore(kv)
    result = store.update({"autoSave": False})
    assert result["autoSave"] is False
    assert json.loads(kv.get("appSettings"))["autoSave"] is False
    assert SettingsStore(kv).load()["autoSave"] is False


def test_failed_update_keeps_previous_values() -> None:
    kv = FlakyKeyValueStore()
    store = SettingsStore(kv)
    kv.fail_writes = True
    with pytest.raises(PersistenceError):
        store.update({"highAccuracy": True})
    assert store.high_accuracy is False


def test_unchanged_update_does_not_write() -> None:
    kv = FlakyKeyValueStore()
    store = SettingsStore(kv)
    store.update({"autoSave": True})
    assert kv.write_count == 0


@pytest.mark.parametrize(
    ("settings", "expected"),
    [
        ({"highAccuracy": True, "batteryOptimization": True}, 50),
        ({"highAccuracy": False, "batteryOptimization": True}, 200),
        ({"highAccuracy": False, "batteryOptimization": False}, 100),
    ],
)
def test_effective_sample_interval(settings, expected: int) -> None:
    store = SettingsStore(InMemoryKeyValueStore())
    store.update(settings)
    assert store.effective_sample_interval_ms(100) == expected


def test_high_accuracy_on_low_battery_warns(caplog) -> None:
    store = SettingsStore(InMemoryKeyValueStore())
    with caplog.at_level(logging.WARNING, logger="workoutmonitor.settings_store"):
        store.update({"highAccuracy": True}, battery_level=0.3)
    assert store.high_accuracy is True
    assert any("High accuracy" in r.getMessage() for r in caplog.records)
