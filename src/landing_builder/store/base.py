"""Persistence abstractions for build state and the project catalog.

Subclass :class:`SessionStore` to plug in Redis or any other backend.
Implementations expire entries ``ttl_seconds`` after their last write and
treat a concurrent write as last-write-wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from landing_builder.core.types import BuildSession, ConversationTurn, Project


class SessionStore(ABC):
    """Keyed by project id. Reads return copies; mutate and save explicitly."""

    @abstractmethod
    async def get_session(self, project_id: str) -> BuildSession | None:
        """Return the session, or ``None`` if absent or expired."""

    @abstractmethod
    async def save_session(self, session: BuildSession) -> None: ...

    @abstractmethod
    async def delete_session(self, project_id: str) -> None: ...

    @abstractmethod
    async def get_history(self, project_id: str) -> list[ConversationTurn] | None:
        """Return the full turn log, or ``None`` if absent or expired."""

    @abstractmethod
    async def save_history(self, project_id: str, turns: list[ConversationTurn]) -> None: ...

    @abstractmethod
    async def delete_history(self, project_id: str) -> None: ...

    async def close(self) -> None:
        """Release resources. No-op by default."""


class ProjectCatalog(ABC):
    """Read-only lookup of the products pages are built for."""

    @abstractmethod
    async def get_project(self, project_id: str) -> Project | None: ...
