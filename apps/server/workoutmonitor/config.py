from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .classifier import ClassifierThresholds
from .constants import (
    CALORIES_PER_ACCEL,
    CALORIES_PER_STEP,
    DEFAULT_SAMPLE_INTERVAL_MS,
    DEFAULT_TICK_INTERVAL_S,
    HISTORY_LIMIT,
    JUMPING_THRESHOLD,
    MIN_BATTERY_LEVEL,
    MIN_SAMPLE_INTERVAL_MS,
    MIN_SAVE_DURATION_S,
    MIN_TICK_INTERVAL_S,
    RECENT_WINDOW_SAMPLES,
    RUNNING_THRESHOLD,
    WALKING_THRESHOLD,
)

SERVER_DIR = Path(__file__).resolve().parents[1]
"""Root of the ``apps/server/`` package tree."""

LOGGER = logging.getLogger(__name__)

VALID_DEVICE_PROFILES = ("still", "walking", "running", "jumping")

DEFAULT_CONFIG: dict[str, Any] = {
    "server": {"host": "0.0.0.0", "port": 8000},
    "sensors": {
        "sample_interval_ms": DEFAULT_SAMPLE_INTERVAL_MS,
        "window_size": RECENT_WINDOW_SAMPLES,
    },
    "metrics": {
        "tick_interval_s": DEFAULT_TICK_INTERVAL_S,
        "live_push_hz": 10,
    },
    "session": {
        "min_battery_level": MIN_BATTERY_LEVEL,
        "min_save_duration_s": MIN_SAVE_DURATION_S,
    },
    "classifier": {
        "jumping_threshold": JUMPING_THRESHOLD,
        "running_threshold": RUNNING_THRESHOLD,
        "walking_threshold": WALKING_THRESHOLD,
    },
    "calories": {
        "per_step": CALORIES_PER_STEP,
        "per_accel": CALORIES_PER_ACCEL,
    },
    "storage": {
        "db_path": "data/workout.db",
        "history_limit": HISTORY_LIMIT,
    },
    "device": {
        "profile": "walking",
        "battery_level": 0.85,
        "seed": None,
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_config_path(path_text: str, config_path: Path) -> Path:
    path = Path(path_text)
    if path.is_absolute():
        return path
    return config_path.resolve().parent / path


@dataclass(slots=True)
class ServerConfig:
    host: str
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError(f"ServerConfig.port must be 1-65535, got {self.port!r}")


@dataclass(slots=True)
class SensorsConfig:
    sample_interval_ms: int
    window_size: int

    def __post_init__(self) -> None:
        if self.sample_interval_ms < MIN_SAMPLE_INTERVAL_MS:
            LOGGER.warning(
                "sensors.sample_interval_ms=%s is below minimum %s; clamped",
                self.sample_interval_ms,
                MIN_SAMPLE_INTERVAL_MS,
            )
            self.sample_interval_ms = MIN_SAMPLE_INTERVAL_MS
        if self.window_size < 1:
            LOGGER.warning("sensors.window_size=%s is below 1; clamped to 1", self.window_size)
            self.window_size = 1


@dataclass(slots=True)
class MetricsConfig:
    tick_interval_s: float
    live_push_hz: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.tick_interval_s) or self.tick_interval_s < MIN_TICK_INTERVAL_S:
            LOGGER.warning(
                "metrics.tick_interval_s=%s is below minimum %s; clamped",
                self.tick_interval_s,
                MIN_TICK_INTERVAL_S,
            )
            self.tick_interval_s = MIN_TICK_INTERVAL_S
        if self.live_push_hz < 1:
            LOGGER.warning("metrics.live_push_hz=%s is below 1; clamped to 1", self.live_push_hz)
            self.live_push_hz = 1


@dataclass(slots=True)
class SessionConfig:
    min_battery_level: float
    min_save_duration_s: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.min_battery_level) or not 0.0 <= self.min_battery_level <= 1.0:
            clamped = (
                MIN_BATTERY_LEVEL
                if not math.isfinite(self.min_battery_level)
                else min(1.0, max(0.0, self.min_battery_level))
            )
            LOGGER.warning(
                "session.min_battery_level=%s is outside [0, 1]; using %s",
                self.min_battery_level,
                clamped,
            )
            self.min_battery_level = clamped
        if self.min_save_duration_s < 0:
            LOGGER.warning(
                "session.min_save_duration_s=%s is negative; clamped to 0",
                self.min_save_duration_s,
            )
            self.min_save_duration_s = 0


@dataclass(slots=True)
class CaloriesConfig:
    per_step: float
    per_accel: float

    def __post_init__(self) -> None:
        for name, default in (("per_step", CALORIES_PER_STEP), ("per_accel", CALORIES_PER_ACCEL)):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                LOGGER.warning("calories.%s=%s is invalid; using %s", name, value, default)
                setattr(self, name, default)


@dataclass(slots=True)
class StorageConfig:
    db_path: Path
    history_limit: int

    def __post_init__(self) -> None:
        if self.history_limit < 1:
            LOGGER.warning(
                "storage.history_limit=%s is below 1; clamped to 1", self.history_limit
            )
            self.history_limit = 1


@dataclass(slots=True)
class DeviceConfig:
    profile: str
    battery_level: float
    seed: int | None

    def __post_init__(self) -> None:
        if self.profile not in VALID_DEVICE_PROFILES:
            LOGGER.warning("device.profile=%r is unknown; using 'walking'", self.profile)
            self.profile = "walking"
        if not math.isfinite(self.battery_level):
            self.battery_level = float(DEFAULT_CONFIG["device"]["battery_level"])
        self.battery_level = min(1.0, max(0.0, self.battery_level))


@dataclass(slots=True)
class AppConfig:
    server: ServerConfig
    sensors: SensorsConfig
    metrics: MetricsConfig
    session: SessionConfig
    classifier: ClassifierThresholds
    calories: CaloriesConfig
    storage: StorageConfig
    device: DeviceConfig
    config_path: Path


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a YAML object at the top level.")
        return data


def _build_thresholds(section: dict[str, Any]) -> ClassifierThresholds:
    try:
        return ClassifierThresholds(
            jumping=float(section["jumping_threshold"]),
            running=float(section["running_threshold"]),
            walking=float(section["walking_threshold"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        LOGGER.warning("Invalid classifier thresholds (%s); using defaults", exc)
        return ClassifierThresholds()


def load_config(config_path: Path | None = None) -> AppConfig:
    path = config_path or (SERVER_DIR / "config.yaml")
    path = path.resolve()
    override = _read_config_file(path)
    merged = _deep_merge(DEFAULT_CONFIG, override)

    server_port = int(merged["server"]["port"])
    if not 1 <= server_port <= 65535:
        raise ValueError(f"server.port must be 1-65535, got {server_port}")

    seed_raw = merged["device"].get("seed")
    app_config = AppConfig(
        server=ServerConfig(
            host=str(merged["server"]["host"]),
            port=server_port,
        ),
        sensors=SensorsConfig(
            sample_interval_ms=int(merged["sensors"]["sample_interval_ms"]),
            window_size=int(merged["sensors"]["window_size"]),
        ),
        metrics=MetricsConfig(
            tick_interval_s=float(merged["metrics"]["tick_interval_s"]),
            live_push_hz=int(merged["metrics"]["live_push_hz"]),
        ),
        session=SessionConfig(
            min_battery_level=float(merged["session"]["min_battery_level"]),
            min_save_duration_s=int(merged["session"]["min_save_duration_s"]),
        ),
        classifier=_build_thresholds(merged["classifier"]),
        calories=CaloriesConfig(
            per_step=float(merged["calories"]["per_step"]),
            per_accel=float(merged["calories"]["per_accel"]),
        ),
        storage=StorageConfig(
            db_path=_resolve_config_path(str(merged["storage"]["db_path"]), path),
            history_limit=int(merged["storage"]["history_limit"]),
        ),
        device=DeviceConfig(
            profile=str(merged["device"]["profile"]).strip().lower(),
            battery_level=float(merged["device"]["battery_level"]),
            seed=int(seed_raw) if seed_raw is not None else None,
        ),
        config_path=path,
    )
    LOGGER.info(
        "Loaded config=%s db_path=%s device_profile=%s",
        app_config.config_path,
        app_config.storage.db_path,
        app_config.device.profile,
    )
    return app_config
