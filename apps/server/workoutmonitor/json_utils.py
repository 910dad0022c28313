"""Shared JSON encoding used by the durable stores and the WebSocket hub."""

from __future__ import annotations

import json
import logging
import math
from typing import Any

__all__ = [
    "safe_json_dumps",
    "safe_json_loads",
    "sanitize_for_json",
]

LOGGER = logging.getLogger(__name__)


def sanitize_for_json(obj: Any) -> Any:
    """Recursively replace non-finite floats with ``None``.

    Numpy scalars and arrays become native Python values so the result can
    always be serialised with ``json.dumps(allow_nan=False)``.
    """
    if hasattr(obj, "tolist") and hasattr(obj, "ndim"):
        obj = obj.tolist()
    elif hasattr(obj, "item") and not isinstance(obj, (dict, list, tuple, str, bytes)):
        obj = obj.item()
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(v) for v in obj]
    return obj


def safe_json_dumps(value: Any) -> bytes:
    """Serialise *value* to compact UTF-8 JSON bytes."""
    text = json.dumps(
        sanitize_for_json(value),
        ensure_ascii=False,
        allow_nan=False,
        separators=(",", ":"),
    )
    return text.encode("utf-8")


def safe_json_loads(value: bytes | str | None, *, context: str) -> Any | None:
    """Deserialise stored JSON, returning ``None`` on empty or invalid input.

    Logs a warning instead of raising so that a corrupted record degrades to
    "no data" rather than a crash::

        safe_json_loads(raw, context="workout history")
    """
    if not value:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError):
        LOGGER.warning("Skipping invalid JSON payload while reading %s", context, exc_info=True)
        return None
