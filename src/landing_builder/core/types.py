from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from landing_builder.core.constants import BuildMode, StepStatus, TurnRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Projects and build state
# ---------------------------------------------------------------------------


class Project(BaseModel):
    """The product a landing page is being built for."""

    id: str
    name: str
    description: str = ""
    target_user: str = ""
    problem_solved: str = ""
    url: str | None = None


class BuildStep(BaseModel):
    name: str
    status: StepStatus = StepStatus.PENDING


class BuildSession(BaseModel):
    """Per-project build state, persisted after every agent round.

    Invariants maintained by :mod:`landing_builder.build.session`:

    - ``current_step`` never decreases.
    - Every stage before ``current_step`` has status ``complete``.
    - ``advisors_consulted`` is cleared whenever ``current_step`` or
      ``current_substep`` changes.
    """

    project_id: str
    mode: BuildMode
    current_step: int = 0
    current_substep: int = 0
    steps: list[BuildStep] = Field(default_factory=list)
    artifacts: dict[str, Any] = Field(default_factory=dict)
    advisors_consulted: set[str] = Field(default_factory=set)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()


class ConversationTurn(BaseModel):
    role: TurnRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Model messages
# ---------------------------------------------------------------------------


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


ContentBlock = Annotated[Union[TextBlock, ToolUseBlock], Field(discriminator="type")]


class ModelMessage(BaseModel):
    """A complete assistant message as returned at the end of a model stream."""

    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str | None = None

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    def to_param(self) -> dict[str, Any]:
        """Serialize as an assistant entry for the next request's ``messages``."""
        return {
            "role": TurnRole.ASSISTANT.value,
            "content": [
                b.model_dump()
                for b in self.content
                if not (isinstance(b, TextBlock) and not b.text)
            ],
        }


class ToolInvocation(BaseModel):
    """One executed tool call, correlated to its request by ``id``."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)
    result_content: str = ""
    is_error: bool = False
    artifacts: dict[str, Any] = Field(default_factory=dict)

    def to_result_block(self) -> dict[str, Any]:
        return {
            "type": "tool_result",
            "tool_use_id": self.id,
            "content": self.result_content,
            "is_error": self.is_error,
        }


# ---------------------------------------------------------------------------
# End-of-turn signals
# ---------------------------------------------------------------------------


class SiteResult(BaseModel):
    site_url: str | None = Field(default=None, alias="siteUrl")
    repo_url: str | None = Field(default=None, alias="repoUrl")

    model_config = {"populate_by_name": True}


class CheckpointSignal(BaseModel):
    action: Literal["checkpoint"] = "checkpoint"
    step: int
    substep: int | None = None
    prompt: str


class ContinueSignal(BaseModel):
    action: Literal["continue"] = "continue"
    step: int


class PollSignal(BaseModel):
    action: Literal["poll"] = "poll"
    step: int
    poll_url: str = Field(alias="pollUrl")

    model_config = {"populate_by_name": True}


class CompleteSignal(BaseModel):
    action: Literal["complete"] = "complete"
    result: SiteResult


StreamEndSignal = Annotated[
    Union[CheckpointSignal, ContinueSignal, PollSignal, CompleteSignal],
    Field(discriminator="action"),
]


# ---------------------------------------------------------------------------
# Inbound turns
# ---------------------------------------------------------------------------


class ModeSelectTurn(BaseModel):
    type: Literal["mode_select"]
    mode: BuildMode


class UserTurn(BaseModel):
    type: Literal["user"]
    content: str = Field(min_length=1)


class ContinueTurn(BaseModel):
    type: Literal["continue"]
    step: int | None = Field(default=None, ge=0)
    substep: int | None = Field(default=None, ge=0)


TurnRequest = Annotated[
    Union[ModeSelectTurn, UserTurn, ContinueTurn],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Status projection
# ---------------------------------------------------------------------------


class BuildStatus(BaseModel):
    """Client-facing view of a session, served by the status endpoint."""

    mode: BuildMode
    current_step: int = Field(alias="currentStep")
    current_substep: int = Field(alias="currentSubstep")
    steps: list[BuildStep]
    site_url: str | None = Field(default=None, alias="siteUrl")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_session(cls, session: BuildSession) -> BuildStatus:
        return cls(
            mode=session.mode,
            current_step=session.current_step,
            current_substep=session.current_substep,
            steps=[s.model_copy() for s in session.steps],
            site_url=session.artifacts.get("siteUrl"),
        )
