"""Tests for llm/anthropic.py (Messages API client over a mock transport)."""
from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from landing_builder.core.config import BuilderConfig
from landing_builder.core.exceptions import ConfigurationError, ModelCallError
from landing_builder.llm.anthropic import AnthropicModelClient


def _sse(*events: dict[str, Any]) -> bytes:
    lines = []
    for event in events:
        lines.append(f"event: {event['type']}")
        lines.append(f"data: {json.dumps(event)}")
        lines.append("")
    return "\n".join(lines).encode()


TOOL_STREAM = _sse(
    {"type": "message_start", "message": {"id": "msg_1", "content": []}},
    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Asking "}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "the copywriter."}},
    {"type": "content_block_stop", "index": 0},
    {
        "type": "content_block_start",
        "index": 1,
        "content_block": {"type": "tool_use", "id": "toolu_9", "name": "consult_advisor", "input": {}},
    },
    {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"advisorId": "copy'}},
    {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": 'writer", "question": "Hero?"}'}},
    {"type": "content_block_stop", "index": 1},
    {"type": "message_delta", "delta": {"stop_reason": "tool_use"}},
    {"type": "message_stop"},
)


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> AnthropicModelClient:
    return AnthropicModelClient(
        "sk-test", model="claude-test", transport=httpx.MockTransport(handler), **kwargs
    )


def _sse_handler(body: bytes, seen: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    return handler


class TestStream:
    async def test_text_and_tool_use_assembled(self) -> None:
        seen: list[httpx.Request] = []
        model = _client(_sse_handler(TOOL_STREAM, seen))

        stream = model.stream(
            system="sys",
            messages=[{"role": "user", "content": "hi"}],
            tools=[{"name": "consult_advisor", "description": "", "input_schema": {}}],
        )
        deltas = [d async for d in stream]
        message = await stream.final_message()
        await model.close()

        assert deltas == ["Asking ", "the copywriter."]
        assert message.text == "Asking the copywriter."
        assert message.stop_reason == "tool_use"
        [call] = message.tool_uses
        assert call.id == "toolu_9"
        assert call.name == "consult_advisor"
        assert call.input == {"advisorId": "copywriter", "question": "Hero?"}

        request = seen[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "sk-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        payload = json.loads(request.content)
        assert payload["stream"] is True
        assert payload["model"] == "claude-test"
        assert payload["system"] == "sys"
        assert payload["tools"][0]["name"] == "consult_advisor"

    async def test_final_message_drains_unread_stream(self) -> None:
        model = _client(_sse_handler(TOOL_STREAM))
        message = await model.stream(system="s", messages=[]).final_message()
        await model.close()
        assert len(message.tool_uses) == 1

    async def test_iterable_once(self) -> None:
        model = _client(_sse_handler(TOOL_STREAM))
        stream = model.stream(system="s", messages=[])
        async for _ in stream:
            pass
        with pytest.raises(ModelCallError):
            stream.__aiter__()
        await model.close()

    async def test_http_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                529, json={"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
            )

        model = _client(handler)
        with pytest.raises(ModelCallError) as exc_info:
            async for _ in model.stream(system="s", messages=[]):
                pass
        await model.close()
        assert exc_info.value.status_code == 529
        assert "Overloaded" in str(exc_info.value)

    async def test_error_event_mid_stream(self) -> None:
        body = _sse(
            {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Half"}},
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        )
        model = _client(_sse_handler(body))
        seen: list[str] = []
        with pytest.raises(ModelCallError) as exc_info:
            async for delta in model.stream(system="s", messages=[]):
                seen.append(delta)
        await model.close()
        assert seen == ["Half"]
        assert exc_info.value.code == "overloaded_error"

    async def test_truncated_stream(self) -> None:
        body = _sse(
            {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Cut"}},
        )
        model = _client(_sse_handler(body))
        stream = model.stream(system="s", messages=[])
        async for _ in stream:
            pass
        with pytest.raises(ModelCallError) as exc_info:
            await stream.final_message()
        await model.close()
        assert exc_info.value.code == "incomplete_stream"

    async def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        model = _client(handler)
        with pytest.raises(ModelCallError) as exc_info:
            async for _ in model.stream(system="s", messages=[]):
                pass
        await model.close()
        assert exc_info.value.code == "transport_error"


class TestComplete:
    async def test_returns_message(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id": "msg_2",
                    "content": [{"type": "text", "text": "Lead with the outcome."}],
                    "stop_reason": "end_turn",
                },
            )

        model = _client(handler)
        message = await model.complete(
            system="You are a copywriter.",
            messages=[{"role": "user", "content": "Hero?"}],
            max_tokens=256,
        )
        await model.close()

        assert message.text == "Lead with the outcome."
        assert message.tool_uses == []
        payload = json.loads(seen[0].content)
        assert "stream" not in payload
        assert "tools" not in payload
        assert payload["max_tokens"] == 256

    async def test_error_status(self) -> None:
        model = _client(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))
        with pytest.raises(ModelCallError) as exc_info:
            await model.complete(system="s", messages=[])
        await model.close()
        assert exc_info.value.status_code == 401
        assert "bad key" in str(exc_info.value)

    async def test_non_json_body(self) -> None:
        model = _client(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(ModelCallError):
            await model.complete(system="s", messages=[])
        await model.close()


class TestFromConfig:
    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            AnthropicModelClient.from_config(BuilderConfig())
        assert exc_info.value.code == "missing_api_key"

    async def test_uses_config_values(self) -> None:
        seen: list[httpx.Request] = []
        config = BuilderConfig(
            anthropic_api_key="sk-config",
            anthropic_base_url="https://models.internal.example/",
            model="claude-config",
            max_tokens=999,
        )
        model = AnthropicModelClient.from_config(
            config, transport=httpx.MockTransport(_sse_handler(TOOL_STREAM, seen))
        )
        await model.stream(system="s", messages=[]).final_message()
        await model.close()

        request = seen[0]
        assert request.url.host == "models.internal.example"
        assert request.headers["x-api-key"] == "sk-config"
        payload = json.loads(request.content)
        assert payload["model"] == "claude-config"
        assert payload["max_tokens"] == 999
