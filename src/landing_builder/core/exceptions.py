from __future__ import annotations

from typing import Any


class BuilderError(Exception):
    """Base exception for all landing-builder errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"unknown_project"``).
        details: Arbitrary key/value context about the error.
        status_code: HTTP-style status code when the error maps onto one
            (``None`` when not applicable).
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status_code = status_code


class InvalidTurnError(BuilderError):
    """Malformed inbound turn. Raised before any state is touched."""


class ProjectNotFoundError(BuilderError):
    """The project id is unknown to the catalog."""


class ConfigurationError(BuilderError):
    """Missing credentials, an unusable store, or an inconsistent plan."""


class ToolExecutionError(BuilderError):
    """A tool failed.

    Captured per tool by the agent loop and fed back to the model as an
    error-tagged result; never fatal to the loop.
    """


class ModelCallError(BuilderError):
    """The model endpoint failed or returned an unusable response.

    Not retried at the round level.
    """


class StoreError(BuilderError):
    """The session store could not read or write."""


class StreamError(BuilderError):
    """Any failure after the response stream has begun."""
