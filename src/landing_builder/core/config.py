from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field


class BuilderConfig(BaseModel):
    anthropic_api_key: str | None = None
    anthropic_base_url: str = "https://api.anthropic.com"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = Field(default=4096, ge=1, le=64000)
    advisor_max_tokens: int = Field(default=1024, ge=1, le=64000)
    max_rounds: int = Field(default=15, ge=1, le=100)
    """Upper bound on model rounds per inbound turn."""
    max_enforcement_retries: int = Field(default=2, ge=0, le=10)
    """Corrective retries spent on a stage key before giving up with a warning."""
    history_window: int = Field(default=40, ge=1)
    session_ttl_seconds: int = Field(default=4 * 3600, ge=60)
    tool_timeout_seconds: float = Field(default=120.0, gt=0)
    turn_budget_seconds: float = Field(default=300.0, gt=0)
    poll_path_template: str = "/builds/{project_id}"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @classmethod
    def from_env(cls) -> BuilderConfig:
        """Create a :class:`BuilderConfig` from environment variables.

        Reads the following env vars (all optional):

        * ``ANTHROPIC_API_KEY`` or ``LANDING_BUILDER_API_KEY`` → ``anthropic_api_key``
        * ``LANDING_BUILDER_BASE_URL`` → ``anthropic_base_url``
        * ``LANDING_BUILDER_MODEL`` → ``model``
        * ``LANDING_BUILDER_MAX_ROUNDS`` → ``max_rounds``
        * ``LANDING_BUILDER_SESSION_TTL`` → ``session_ttl_seconds``
        * ``LANDING_BUILDER_POLL_PATH`` → ``poll_path_template``
        * ``LANDING_BUILDER_LOG_LEVEL`` → ``log_level``

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}

        api_key = os.environ.get("LANDING_BUILDER_API_KEY") or os.environ.get(
            "ANTHROPIC_API_KEY"
        )
        if api_key:
            kwargs["anthropic_api_key"] = api_key

        base_url = os.environ.get("LANDING_BUILDER_BASE_URL")
        if base_url:
            kwargs["anthropic_base_url"] = base_url

        model = os.environ.get("LANDING_BUILDER_MODEL")
        if model:
            kwargs["model"] = model

        max_rounds = os.environ.get("LANDING_BUILDER_MAX_ROUNDS")
        if max_rounds:
            kwargs["max_rounds"] = int(max_rounds)

        ttl = os.environ.get("LANDING_BUILDER_SESSION_TTL")
        if ttl:
            kwargs["session_ttl_seconds"] = int(ttl)

        poll_path = os.environ.get("LANDING_BUILDER_POLL_PATH")
        if poll_path:
            kwargs["poll_path_template"] = poll_path

        log_level = os.environ.get("LANDING_BUILDER_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.upper()

        return cls(**kwargs)

    def poll_url(self, project_id: str) -> str:
        return self.poll_path_template.format(project_id=project_id)
