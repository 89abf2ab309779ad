"""In-process store backed by plain dicts, with per-entry TTL."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from typing import Generic, TypeVar

from landing_builder.core.types import BuildSession, ConversationTurn, Project
from landing_builder.store.base import ProjectCatalog, SessionStore

_T = TypeVar("_T")


class _TTLMap(Generic[_T]):
    def __init__(self, ttl: float, clock: Callable[[], float]) -> None:
        self._ttl = ttl
        self._clock = clock
        # Stores (written_at, value) tuples.
        self._data: dict[str, tuple[float, _T]] = {}

    def get(self, key: str) -> _T | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        ts, value = entry
        if self._clock() - ts > self._ttl:
            del self._data[key]
            return None
        return value

    def set(self, key: str, value: _T) -> None:
        self._data[key] = (self._clock(), value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class InMemorySessionStore(SessionStore):
    """Dict-backed store for tests and single-process deployments.

    Values are deep-copied on the way in and out, so callers never share
    state through the store.

    Args:
        ttl_seconds: Lifetime of an entry after its last write (default 4 hours).
        clock: Monotonic time source; override in tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 4 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: _TTLMap[BuildSession] = _TTLMap(ttl_seconds, clock)
        self._histories: _TTLMap[list[ConversationTurn]] = _TTLMap(ttl_seconds, clock)

    async def get_session(self, project_id: str) -> BuildSession | None:
        session = self._sessions.get(project_id)
        return session.model_copy(deep=True) if session is not None else None

    async def save_session(self, session: BuildSession) -> None:
        self._sessions.set(session.project_id, session.model_copy(deep=True))

    async def delete_session(self, project_id: str) -> None:
        self._sessions.delete(project_id)

    async def get_history(self, project_id: str) -> list[ConversationTurn] | None:
        turns = self._histories.get(project_id)
        return [t.model_copy() for t in turns] if turns is not None else None

    async def save_history(self, project_id: str, turns: list[ConversationTurn]) -> None:
        self._histories.set(project_id, [t.model_copy() for t in turns])

    async def delete_history(self, project_id: str) -> None:
        self._histories.delete(project_id)


class InMemoryProjectCatalog(ProjectCatalog):
    def __init__(self, projects: Iterable[Project] = ()) -> None:
        self._projects = {p.id: p for p in projects}

    def add(self, project: Project) -> None:
        self._projects[project.id] = project

    async def get_project(self, project_id: str) -> Project | None:
        return self._projects.get(project_id)
