"""Health check endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from ..api_models import HealthResponse

if TYPE_CHECKING:
    from ..app import RuntimeState


def create_health_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter()

    @router.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        status = state.recorder.status()
        return {
            "status": "ok" if status["setup_error"] is None else "degraded",
            "recording": status["recording"],
            "permissions_granted": status["permissions_granted"],
            "setup_error": status["setup_error"],
            "history_count": len(state.history),
            "live_clients": (await state.ws_hub.stats())["connections"],
        }

    return router
