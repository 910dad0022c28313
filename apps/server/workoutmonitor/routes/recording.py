"""Recording control endpoints: start, stop, toggle and status."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from ..api_models import RecordingStatusResponse, ToggleResponse
from ._helpers import call_or_http_error

if TYPE_CHECKING:
    from ..app import RuntimeState


def create_recording_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter()

    @router.get("/api/recording/status", response_model=RecordingStatusResponse)
    async def get_recording_status() -> RecordingStatusResponse:
        payload = state.recorder.status()
        payload["battery_level"] = state.battery_level()
        payload["metrics"] = state.aggregator.snapshot.to_dict()
        return payload

    @router.post("/api/recording/toggle", response_model=ToggleResponse)
    async def toggle_recording() -> ToggleResponse:
        result = await call_or_http_error(state.toggle_recording)
        return result.to_dict()

    @router.post("/api/recording/start", response_model=ToggleResponse)
    async def start_recording() -> ToggleResponse:
        result = await call_or_http_error(state.start_recording)
        return result.to_dict()

    @router.post("/api/recording/stop", response_model=ToggleResponse)
    async def stop_recording() -> ToggleResponse:
        result = await call_or_http_error(state.stop_recording)
        return result.to_dict()

    return router
