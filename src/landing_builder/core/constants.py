from __future__ import annotations

from enum import StrEnum


class BuildMode(StrEnum):
    INTERACTIVE = "interactive"
    AUTONOMOUS = "autonomous"


class StepStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


class TurnRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class SignalAction(StrEnum):
    CHECKPOINT = "checkpoint"
    CONTINUE = "continue"
    POLL = "poll"
    COMPLETE = "complete"

