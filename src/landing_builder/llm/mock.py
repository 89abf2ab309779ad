from __future__ import annotations

import itertools
from typing import Any, AsyncIterator

from landing_builder.core.exceptions import ModelCallError
from landing_builder.core.types import ModelMessage, TextBlock, ToolUseBlock
from landing_builder.llm.base import ModelClient, ModelStream

_ids = itertools.count(1)


def text_response(text: str) -> ModelMessage:
    """A scripted final answer with no tool calls."""
    return ModelMessage(content=[TextBlock(text=text)], stop_reason="end_turn")


def tool_call(name: str, input: dict[str, Any] | None = None, id: str | None = None) -> ToolUseBlock:
    return ToolUseBlock(id=id or f"toolu_{next(_ids)}", name=name, input=input or {})


def tool_response(*calls: ToolUseBlock, text: str = "") -> ModelMessage:
    """A scripted message that requests *calls*, optionally preceded by *text*."""
    content: list[TextBlock | ToolUseBlock] = []
    if text:
        content.append(TextBlock(text=text))
    content.extend(calls)
    return ModelMessage(content=content, stop_reason="tool_use")


class MidStreamFailure:
    """Script entry that streams *partial* text and then raises *error*."""

    def __init__(self, partial: str, error: Exception) -> None:
        self.partial = partial
        self.error = error


ScriptEntry = ModelMessage | MidStreamFailure | Exception


class _MockStream(ModelStream):
    def __init__(self, entry: ScriptEntry, chunk_size: int | None) -> None:
        self._entry = entry
        self._chunk_size = chunk_size

    def _chunks(self, text: str) -> list[str]:
        if not text:
            return []
        if not self._chunk_size:
            return [text]
        return [text[i : i + self._chunk_size] for i in range(0, len(text), self._chunk_size)]

    async def _deltas(self) -> AsyncIterator[str]:
        entry = self._entry
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, MidStreamFailure):
            for chunk in self._chunks(entry.partial):
                yield chunk
            raise entry.error
        for block in entry.content:
            if isinstance(block, TextBlock):
                for chunk in self._chunks(block.text):
                    yield chunk

    def __aiter__(self) -> AsyncIterator[str]:
        return self._deltas()

    async def final_message(self) -> ModelMessage:
        if isinstance(self._entry, MidStreamFailure):
            raise self._entry.error
        if isinstance(self._entry, Exception):
            raise self._entry
        return self._entry


class MockModelClient(ModelClient):
    """In-memory model client for tests and demos.

    Usage::

        model = MockModelClient([
            tool_response(tool_call("consult_advisor", {"advisorId": "copywriter", "question": "Hero?"})),
            text_response("Here is the hero draft."),
        ])
        model.add_completion("Lead with the outcome, not the feature.")

    Each :meth:`stream` call consumes the next scripted entry. Each
    :meth:`complete` call consumes the next queued completion text, falling
    back to *default_completion*.
    """

    def __init__(
        self,
        script: list[ScriptEntry] | None = None,
        *,
        default_completion: str = "Mock advisor response.",
        chunk_size: int | None = None,
    ) -> None:
        self._script: list[ScriptEntry] = list(script or [])
        self._completions: list[str] = []
        self._default_completion = default_completion
        self._chunk_size = chunk_size
        self.stream_calls: list[dict[str, Any]] = []
        self.complete_calls: list[dict[str, Any]] = []

    def add_response(self, entry: ScriptEntry) -> None:
        self._script.append(entry)

    def add_completion(self, text: str) -> None:
        self._completions.append(text)

    @property
    def remaining(self) -> int:
        return len(self._script)

    def stream(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
    ) -> ModelStream:
        # Snapshot: the loop keeps appending to the same list after the call.
        self.stream_calls.append(
            {"system": system, "messages": list(messages), "tools": tools or []}
        )
        if not self._script:
            raise ModelCallError("MockModelClient: no scripted response left")
        return _MockStream(self._script.pop(0), self._chunk_size)

    async def complete(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> ModelMessage:
        self.complete_calls.append({"system": system, "messages": list(messages)})
        text = self._completions.pop(0) if self._completions else self._default_completion
        return text_response(text)
