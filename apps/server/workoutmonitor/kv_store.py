"""Durable key-value storage for the workout monitor.

The history and settings stores each own exactly one key and always write a
whole serialized value, so a single ``INSERT ... ON CONFLICT`` per write is
atomic.  ``SqliteKeyValueStore`` keeps everything in one small file;
``InMemoryKeyValueStore`` backs tests and ephemeral runs.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from threading import RLock
from typing import Protocol, runtime_checkable

from .errors import PersistenceError

LOGGER = logging.getLogger(__name__)

# -- Schema -------------------------------------------------------------------

_SCHEMA_VERSION = 1

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS schema_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       BLOB NOT NULL,
    updated_at  TEXT NOT NULL
);
"""


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store; nothing survives the process."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._lock = RLock()
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def close(self) -> None:
        return None


class SqliteKeyValueStore:
    """Thin wrapper around a SQLite database holding one ``kv`` table."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = RLock()
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._ensure_schema()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Could not open storage at {db_path}: {exc}") from exc

    # -- lifecycle ------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _cursor(self, *, commit: bool = True) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            cur = self._conn.cursor()
            try:
                yield cur
                if commit:
                    self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cur.close()

    def _ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.executescript(_SCHEMA_SQL)
        with self._cursor() as cur:
            cur.execute("SELECT value FROM schema_meta WHERE key = ?", ("version",))
            row = cur.fetchone()
            if row is None:
                cur.execute(
                    "INSERT INTO schema_meta (key, value) VALUES (?, ?)",
                    ("version", str(_SCHEMA_VERSION)),
                )
                return
            version = int(str(row[0]))
            if version != _SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported storage schema version {version}; "
                    f"expected {_SCHEMA_VERSION}. Delete the database file to recreate."
                )

    # -- key-value API --------------------------------------------------------

    def get(self, key: str) -> bytes | None:
        try:
            with self._cursor(commit=False) as cur:
                cur.execute("SELECT value FROM kv WHERE key = ?", (key,))
                row = cur.fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read {key!r}: {exc}") from exc
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def set(self, key: str, value: bytes) -> None:
        now = datetime.now(UTC).isoformat()
        try:
            with self._cursor() as cur:
                cur.execute(
                    "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = excluded.updated_at",
                    (key, sqlite3.Binary(value), now),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._cursor() as cur:
                cur.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not delete {key!r}: {exc}") from exc
