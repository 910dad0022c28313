"""Live push of the recording snapshot to connected dashboards."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket

from .json_utils import sanitize_for_json

LOGGER = logging.getLogger(__name__)

LiveBuilder = Callable[[], dict[str, Any]]

SEND_TIMEOUT_S = 0.5
"""A dashboard that does not accept a frame within this window is dropped."""

WARN_THROTTLE_S = 10.0

BACKOFF_AFTER_FAILURES = 10

BUILD_FAILED_FRAME = json.dumps({"error": "payload_build_failed"}, separators=(",", ":"))


@dataclass(slots=True)
class LiveClient:
    websocket: WebSocket
    frames_sent: int = 0


class WebSocketHub:
    """Fans one live snapshot out to every connected dashboard.

    The snapshot is built once per push, so all dashboards see the same
    metrics for a given tick.
    """

    def __init__(self, *, send_timeout_s: float = SEND_TIMEOUT_S) -> None:
        self._clients: dict[int, LiveClient] = {}
        self._lock = asyncio.Lock()
        self._send_timeout_s = send_timeout_s
        self._dropped = 0
        self._last_warning_at: float | None = None

    async def add(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients[id(websocket)] = LiveClient(websocket)
        LOGGER.debug("Live client connected (%d total)", len(self._clients))

    async def remove(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.pop(id(websocket), None)

    async def connection_count(self) -> int:
        async with self._lock:
            return len(self._clients)

    async def stats(self) -> dict[str, int]:
        async with self._lock:
            return {
                "connections": len(self._clients),
                "frames_sent": sum(c.frames_sent for c in self._clients.values()),
                "dropped": self._dropped,
            }

    def _encode(self, builder: LiveBuilder) -> str:
        try:
            snapshot = sanitize_for_json(builder())
            return json.dumps(snapshot, separators=(",", ":"), allow_nan=False)
        except Exception:
            LOGGER.error("Could not build the live snapshot", exc_info=True)
            return BUILD_FAILED_FRAME

    def _warn_send_failure(self) -> None:
        now = asyncio.get_running_loop().time()
        if self._last_warning_at is not None and now - self._last_warning_at < WARN_THROTTLE_S:
            return
        self._last_warning_at = now
        LOGGER.warning("Dropping live client after a failed send", exc_info=True)

    async def _deliver(self, client: LiveClient, frame: str) -> bool:
        try:
            await asyncio.wait_for(client.websocket.send_text(frame), self._send_timeout_s)
        except Exception:
            self._warn_send_failure()
            return False
        client.frames_sent += 1
        return True

    async def broadcast(self, builder: LiveBuilder) -> None:
        async with self._lock:
            clients = list(self._clients.values())
        if not clients:
            return
        frame = self._encode(builder)
        delivered = await asyncio.gather(*(self._deliver(c, frame) for c in clients))
        stale = [c.websocket for c, ok in zip(clients, delivered, strict=True) if not ok]
        for websocket in stale:
            await self.remove(websocket)
        self._dropped += len(stale)

    async def run(self, hz: int, builder: LiveBuilder) -> None:
        """Push a snapshot *hz* times per second until cancelled."""
        period = 1.0 / max(1, hz)
        loop = asyncio.get_running_loop()
        failures = 0
        while True:
            started = loop.time()
            try:
                await self.broadcast(builder)
            except Exception:
                failures += 1
                if failures < BACKOFF_AFTER_FAILURES:
                    LOGGER.warning("Live push failed; retrying next tick", exc_info=True)
                else:
                    LOGGER.error(
                        "Live push failed %d times in a row; backing off", failures, exc_info=True
                    )
                    await asyncio.sleep(period * 5)
            else:
                failures = 0
            await asyncio.sleep(max(0.0, period - (loop.time() - started)))
