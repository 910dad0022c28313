"""WebSocket endpoint for the live metrics and raw-sample stream."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

if TYPE_CHECKING:
    from ..app import RuntimeState

LOGGER = logging.getLogger(__name__)


def create_websocket_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws")
    async def ws_endpoint(ws: WebSocket) -> None:
        await ws.accept()
        await state.ws_hub.add(ws)
        try:
            while True:
                # Inbound messages carry no commands; reading detects disconnects.
                await ws.receive_text()
        except WebSocketDisconnect:
            LOGGER.debug("WebSocket client disconnected")
        except Exception:
            LOGGER.warning("WebSocket handler error", exc_info=True)
        finally:
            await state.ws_hub.remove(ws)

    return router
