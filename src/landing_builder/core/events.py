"""Outbound stream events and their newline-delimited JSON framing.

A turn's response is a sequence of independently parseable events, one
JSON object per line::

    {"type": "text", "text": "Drafting the hero..."}
    {"type": "advisor", "advisorId": "copywriter", "advisorName": "Brand Copywriter", "content": "..."}
    {"type": "signal", "signal": {"action": "checkpoint", "step": 2, "substep": null, "prompt": "..."}}

Exactly one ``signal`` event (or one ``error`` event if the turn broke)
terminates every stream.
"""

from __future__ import annotations

from typing import Annotated, AsyncIterator, Iterable, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from landing_builder.core.types import StreamEndSignal


class TextDelta(BaseModel):
    type: Literal["text"] = "text"
    text: str


class AdvisorSegment(BaseModel):
    """A verbatim advisor consultation, rendered by clients as its own message."""

    type: Literal["advisor"] = "advisor"
    advisor_id: str = Field(alias="advisorId")
    advisor_name: str = Field(alias="advisorName")
    content: str

    model_config = {"populate_by_name": True}


class EndSignalEvent(BaseModel):
    type: Literal["signal"] = "signal"
    signal: StreamEndSignal


class StreamErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    Union[TextDelta, AdvisorSegment, EndSignalEvent, StreamErrorEvent],
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def encode_event(event: StreamEvent) -> str:
    """Serialize *event* as one NDJSON line (with trailing newline)."""
    return event.model_dump_json(by_alias=True) + "\n"


async def encode_stream(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_event(event)


def decode_event(line: str) -> StreamEvent:
    return _EVENT_ADAPTER.validate_json(line)


def parse_events(lines: Iterable[str]) -> list[StreamEvent]:
    """Decode an NDJSON response body, skipping blank lines."""
    return [decode_event(line) for line in lines if line.strip()]
