from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from landing_builder.core.types import ModelMessage


class ModelStream(ABC):
    """One streaming model response.

    Iterate to receive text deltas as they arrive, then call
    :meth:`final_message` for the assembled message including any tool-use
    requests. Calling :meth:`final_message` without iterating first drains
    the stream.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[str]: ...

    @abstractmethod
    async def final_message(self) -> ModelMessage: ...


class ModelClient(ABC):
    """Abstract base for chat-completion backends that support tool calling.

    ``messages`` use the Messages API shape: a list of
    ``{"role": "user" | "assistant", "content": str | list[block]}``.
    ``tools`` is a list of ``{"name", "description", "input_schema"}``.
    """

    @abstractmethod
    def stream(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
    ) -> ModelStream: ...

    @abstractmethod
    async def complete(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> ModelMessage:
        """Non-streaming call, used for advisor consultations."""

    async def close(self) -> None:
        """Release network resources. No-op by default."""
