"""Settings endpoints: battery optimization, high accuracy and auto-save."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from ..api_models import SettingsRequest, SettingsResponse
from ._helpers import call_or_http_error

if TYPE_CHECKING:
    from ..app import RuntimeState


def create_settings_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter()

    @router.get("/api/settings", response_model=SettingsResponse)
    async def get_settings() -> SettingsResponse:
        return state.settings_payload()

    @router.put("/api/settings", response_model=SettingsResponse)
    async def update_settings(req: SettingsRequest) -> SettingsResponse:
        payload = req.model_dump(exclude_none=True)
        return await call_or_http_error(state.update_settings, payload)

    return router
