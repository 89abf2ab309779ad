"""SQLite session store using stdlib ``sqlite3`` + ``asyncio.to_thread``.

Sessions and histories are stored as JSON payloads in one table keyed by
``(kind, project_id)`` with a wall-clock ``expires_at``. All blocking I/O
runs in a worker thread so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import sqlite3
import time
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import TypeAdapter

from landing_builder.core.exceptions import StoreError
from landing_builder.core.types import BuildSession, ConversationTurn
from landing_builder.store.base import SessionStore

logger = structlog.get_logger(__name__)

_SESSION = "session"
_HISTORY = "history"

_TURNS: TypeAdapter[list[ConversationTurn]] = TypeAdapter(list[ConversationTurn])

_SCHEMA = """
CREATE TABLE IF NOT EXISTS build_state (
    kind TEXT NOT NULL,
    project_id TEXT NOT NULL,
    payload TEXT NOT NULL,
    expires_at REAL NOT NULL,
    PRIMARY KEY (kind, project_id)
)
"""


class SQLiteSessionStore(SessionStore):
    """Durable store for single-host deployments.

    Args:
        database: Path to the SQLite file, or ``":memory:"``.
        ttl_seconds: Lifetime of an entry after its last write (default 4 hours).
        clock: Wall-clock time source; override in tests.

    Usage::

        store = SQLiteSessionStore("builds.db")
        await store.connect()
        ...
        await store.close()
    """

    def __init__(
        self,
        database: str = ":memory:",
        ttl_seconds: float = 4 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._database = database
        self._ttl = ttl_seconds
        self._clock = clock
        self._conn: sqlite3.Connection | None = None

    # -- lifecycle ----------------------------------------------------------

    async def connect(self) -> None:
        def _connect() -> sqlite3.Connection:
            conn = sqlite3.connect(self._database, check_same_thread=False)
            conn.execute(_SCHEMA)
            conn.commit()
            return conn

        try:
            self._conn = await asyncio.to_thread(_connect)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open session store: {exc}", code="store_unavailable") from exc
        logger.info("sqlite_store_connected", database=self._database)

    async def close(self) -> None:
        if self._conn is not None:
            await asyncio.to_thread(self._conn.close)
            self._conn = None
            logger.info("sqlite_store_closed", database=self._database)

    # -- primitives ---------------------------------------------------------

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Session store is not connected", code="store_unavailable")
        return self._conn

    async def _run(self, fn: Callable[[sqlite3.Connection], Any]) -> Any:
        conn = self._require_conn()
        try:
            return await asyncio.to_thread(fn, conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Session store failure: {exc}", code="store_failure") from exc

    async def _get(self, kind: str, project_id: str) -> str | None:
        now = self._clock()

        def _select(conn: sqlite3.Connection) -> str | None:
            row = conn.execute(
                "SELECT payload, expires_at FROM build_state WHERE kind = ? AND project_id = ?",
                (kind, project_id),
            ).fetchone()
            if row is None:
                return None
            if row[1] <= now:
                conn.execute(
                    "DELETE FROM build_state WHERE kind = ? AND project_id = ?",
                    (kind, project_id),
                )
                conn.commit()
                return None
            return row[0]

        return await self._run(_select)

    async def _put(self, kind: str, project_id: str, payload: str) -> None:
        expires_at = self._clock() + self._ttl

        def _upsert(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO build_state (kind, project_id, payload, expires_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT (kind, project_id) DO UPDATE SET "
                "payload = excluded.payload, expires_at = excluded.expires_at",
                (kind, project_id, payload, expires_at),
            )
            conn.commit()

        await self._run(_upsert)

    async def _delete(self, kind: str, project_id: str) -> None:
        def _remove(conn: sqlite3.Connection) -> None:
            conn.execute(
                "DELETE FROM build_state WHERE kind = ? AND project_id = ?",
                (kind, project_id),
            )
            conn.commit()

        await self._run(_remove)

    # -- SessionStore -------------------------------------------------------

    async def get_session(self, project_id: str) -> BuildSession | None:
        payload = await self._get(_SESSION, project_id)
        return BuildSession.model_validate_json(payload) if payload is not None else None

    async def save_session(self, session: BuildSession) -> None:
        await self._put(_SESSION, session.project_id, session.model_dump_json())

    async def delete_session(self, project_id: str) -> None:
        await self._delete(_SESSION, project_id)

    async def get_history(self, project_id: str) -> list[ConversationTurn] | None:
        payload = await self._get(_HISTORY, project_id)
        return _TURNS.validate_json(payload) if payload is not None else None

    async def save_history(self, project_id: str, turns: list[ConversationTurn]) -> None:
        await self._put(_HISTORY, project_id, _TURNS.dump_json(turns).decode())

    async def delete_history(self, project_id: str) -> None:
        await self._delete(_HISTORY, project_id)
