"""Runtime orchestration: device -> buffers -> aggregator -> recorder -> history/WS/API.

Boundary note for maintainers:
- Keep this module focused on wiring and the presentation-layer flow.
- Metric math belongs in ``metrics.py`` / ``classifier.py``.
- API schemas belong in ``api_models.py``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI

from .config import AppConfig, load_config
from .domain_models import WorkoutMetrics, WorkoutSession, format_duration
from .errors import PermissionDenied, PersistenceError, UnavailableError
from .history_store import HistoryStore
from .kv_store import KeyValueStore, SqliteKeyValueStore
from .metrics import MetricsAggregator
from .processing import SampleBuffer, StepCountCell
from .recorder import SessionRecorder
from .routes import create_router
from .settings_store import SettingsStore
from .simulated_device import SimulatedDevice
from .ws_hub import WebSocketHub

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ToggleResult:
    """Outcome of a start/stop request as shown to the user."""

    recording: bool
    metrics: WorkoutMetrics
    saved: bool = False
    session: WorkoutSession | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recording": self.recording,
            "metrics": self.metrics.to_dict(),
            "saved": self.saved,
            "session_id": self.session.id if self.session is not None else None,
            "message": self.message,
        }


@dataclass(slots=True)
class RuntimeState:
    config: AppConfig
    device: SimulatedDevice
    buffer: SampleBuffer
    steps: StepCountCell
    aggregator: MetricsAggregator
    recorder: SessionRecorder
    kv_store: KeyValueStore
    history: HistoryStore
    settings_store: SettingsStore
    ws_hub: WebSocketHub
    tasks: list[asyncio.Task] = field(default_factory=list)

    def setup_sensors(self) -> None:
        """Run sensor setup once; a failure is kept for status and start()."""
        try:
            self.recorder.setup()
        except (UnavailableError, PermissionDenied) as exc:
            LOGGER.warning("Sensor setup failed: %s", exc.message)

    def apply_settings(self) -> None:
        """Push the effective sampling interval into the recorder."""
        interval = self.settings_store.effective_sample_interval_ms(
            self.config.sensors.sample_interval_ms
        )
        self.recorder.set_sample_interval_ms(interval)

    def battery_level(self) -> float | None:
        try:
            return self.recorder.battery_level()
        except Exception:
            LOGGER.warning("Battery level unavailable", exc_info=True)
            return None

    def update_settings(self, data: dict[str, Any]) -> dict[str, Any]:
        settings = self.settings_store.update(data, battery_level=self.battery_level())
        self.apply_settings()
        return self.settings_payload(settings)

    def settings_payload(self, settings: dict[str, bool] | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = dict(settings or self.settings_store.snapshot())
        payload["effectiveSampleIntervalMs"] = self.recorder.sample_interval_ms
        return payload

    # -- recording flow --------------------------------------------------------

    def start_recording(self) -> ToggleResult:
        started = self.recorder.start()
        return ToggleResult(
            recording=True,
            metrics=self.aggregator.snapshot,
            message=None if started else "Already recording",
        )

    def stop_recording(self) -> ToggleResult:
        final = self.recorder.stop()
        if final is None:
            return ToggleResult(
                recording=False,
                metrics=self.aggregator.snapshot,
                message="Not recording",
            )
        return self._finish_session(final)

    def toggle_recording(self) -> ToggleResult:
        final = self.recorder.toggle()
        if final is None:
            return ToggleResult(recording=True, metrics=self.aggregator.snapshot)
        return self._finish_session(final)

    def _finish_session(self, final: WorkoutMetrics) -> ToggleResult:
        if not self.recorder.should_persist(final):
            return ToggleResult(
                recording=False,
                metrics=final,
                message=(
                    f"Session too short to save ({format_duration(final.duration)}); "
                    f"must exceed {self.recorder.min_save_duration_s}s"
                ),
            )
        if not self.settings_store.auto_save:
            return ToggleResult(recording=False, metrics=final, message="Auto-save is off")
        try:
            session = self.history.save(final)
        except PersistenceError as exc:
            LOGGER.warning("Could not save finished session: %s", exc.message)
            return ToggleResult(recording=False, metrics=final, message=exc.message)
        return ToggleResult(recording=False, metrics=final, saved=True, session=session)

    # -- live payload ----------------------------------------------------------

    def build_ws_payload(self) -> dict[str, Any]:
        return {
            "recording": self.recorder.is_recording,
            "metrics": self.aggregator.snapshot.to_dict(),
            "sensorData": self.recorder.live_sensor_data().to_dict(),
            "batteryLevel": self.battery_level(),
        }


def create_app(
    config_path: Path | None = None, *, kv_store: KeyValueStore | None = None
) -> FastAPI:
    config = load_config(config_path)

    kv = kv_store if kv_store is not None else SqliteKeyValueStore(config.storage.db_path)
    device = SimulatedDevice(
        config.device.profile,
        battery_level=config.device.battery_level,
        seed=config.device.seed,
    )
    buffer = SampleBuffer(capacity=config.sensors.window_size)
    steps = StepCountCell()
    aggregator = MetricsAggregator(
        buffer,
        steps,
        tick_interval_s=config.metrics.tick_interval_s,
        window=config.sensors.window_size,
        thresholds=config.classifier,
        calories_per_step=config.calories.per_step,
        calories_per_accel=config.calories.per_accel,
    )
    recorder = SessionRecorder(
        device,
        device,
        device,
        buffer,
        steps,
        aggregator,
        min_battery_level=config.session.min_battery_level,
        min_save_duration_s=config.session.min_save_duration_s,
        sample_interval_ms=config.sensors.sample_interval_ms,
    )
    history = HistoryStore(kv, limit=config.storage.history_limit)
    settings_store = SettingsStore(kv)

    runtime = RuntimeState(
        config=config,
        device=device,
        buffer=buffer,
        steps=steps,
        aggregator=aggregator,
        recorder=recorder,
        kv_store=kv,
        history=history,
        settings_store=settings_store,
        ws_hub=WebSocketHub(),
    )

    async def start_runtime() -> None:
        await asyncio.to_thread(runtime.history.load)
        await asyncio.to_thread(runtime.settings_store.load)
        runtime.apply_settings()
        runtime.setup_sensors()
        runtime.tasks = [
            asyncio.create_task(runtime.aggregator.run(), name="metrics-tick"),
            asyncio.create_task(
                runtime.ws_hub.run(config.metrics.live_push_hz, runtime.build_ws_payload),
                name="ws-broadcast",
            ),
        ]

    async def stop_runtime() -> None:
        for task in runtime.tasks:
            task.cancel()
        await asyncio.gather(*runtime.tasks, return_exceptions=True)
        runtime.tasks.clear()

        if runtime.recorder.is_recording:
            try:
                await asyncio.to_thread(runtime.stop_recording)
            except Exception:
                LOGGER.warning("Error stopping the active session on shutdown", exc_info=True)
        try:
            await asyncio.to_thread(runtime.recorder.close)
        except Exception:
            LOGGER.warning("Error releasing sensor watches", exc_info=True)
        try:
            await asyncio.to_thread(runtime.device.close)
        except Exception:
            LOGGER.warning("Error closing simulated device", exc_info=True)
        close = getattr(runtime.kv_store, "close", None)
        if close is not None:
            try:
                close()
            except Exception:
                LOGGER.warning("Error closing storage", exc_info=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await start_runtime()
        try:
            yield
        finally:
            await stop_runtime()

    app = FastAPI(title="Workout Monitor", lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(create_router(runtime))
    return app


app: FastAPI | None = (
    create_app()
    if __name__ != "__main__" and os.getenv("WORKOUTMONITOR_DISABLE_AUTO_APP", "0") != "1"
    else None
)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the workout monitor server")
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    args = parser.parse_args()

    runtime_app = create_app(config_path=args.config)
    runtime: RuntimeState = runtime_app.state.runtime
    uvicorn.run(
        runtime_app,
        host=runtime.config.server.host,
        port=runtime.config.server.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
