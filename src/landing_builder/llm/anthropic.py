from __future__ import annotations

import json
from typing import Any, AsyncIterator

import httpx
import structlog

from landing_builder.core.config import BuilderConfig
from landing_builder.core.exceptions import ConfigurationError, ModelCallError
from landing_builder.core.types import ModelMessage
from landing_builder.llm.base import ModelClient, ModelStream

logger = structlog.get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
_MESSAGES_PATH = "/v1/messages"


def _error_from_response(status_code: int, body: bytes) -> ModelCallError:
    try:
        details: dict[str, Any] = json.loads(body)
    except ValueError:
        details = {"raw": body.decode(errors="replace")[:500]}
    error = details.get("error")
    message = error.get("message") if isinstance(error, dict) else None
    return ModelCallError(
        f"Model API returned HTTP {status_code}" + (f": {message}" if message else ""),
        code=str(status_code),
        details=details,
        status_code=status_code,
    )


def _message_from_blocks(blocks: list[dict[str, Any]], stop_reason: str | None) -> ModelMessage:
    # Only text and tool_use blocks matter to the loop; drop the rest.
    content = [b for b in blocks if b.get("type") in ("text", "tool_use")]
    return ModelMessage.model_validate({"content": content, "stop_reason": stop_reason})


class AnthropicStream(ModelStream):
    """One ``stream: true`` Messages API response parsed from server-sent events."""

    def __init__(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> None:
        self._client = client
        self._payload = payload
        self._blocks: dict[int, dict[str, Any]] = {}
        self._partial_json: dict[int, list[str]] = {}
        self._stop_reason: str | None = None
        self._final: ModelMessage | None = None
        self._started = False

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise ModelCallError("AnthropicStream can only be iterated once")
        self._started = True
        return self._deltas()

    async def final_message(self) -> ModelMessage:
        if not self._started:
            async for _ in self:
                pass
        if self._final is None:
            raise ModelCallError("Model stream ended before message_stop", code="incomplete_stream")
        return self._final

    async def _deltas(self) -> AsyncIterator[str]:
        try:
            async with self._client.stream("POST", _MESSAGES_PATH, json=self._payload) as resp:
                if resp.status_code >= 400:
                    raise _error_from_response(resp.status_code, await resp.aread())
                async for line in resp.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if not data:
                        continue
                    try:
                        event = json.loads(data)
                    except ValueError as exc:
                        raise ModelCallError(f"Malformed stream event: {data[:200]}") from exc
                    text = self._apply(event)
                    if text:
                        yield text
        except httpx.HTTPError as exc:
            raise ModelCallError(f"Model request failed: {exc}", code="transport_error") from exc

    def _apply(self, event: dict[str, Any]) -> str | None:
        """Fold one SSE event into the message being assembled.

        Returns the text delta carried by the event, if any.
        """
        kind = event.get("type")
        if kind == "content_block_start":
            index = event["index"]
            block = dict(event.get("content_block", {}))
            if block.get("type") == "tool_use":
                block["input"] = {}
                self._partial_json[index] = []
            self._blocks[index] = block
        elif kind == "content_block_delta":
            index = event["index"]
            delta = event.get("delta", {})
            if delta.get("type") == "text_delta":
                text = delta.get("text", "")
                block = self._blocks.setdefault(index, {"type": "text", "text": ""})
                block["text"] = block.get("text", "") + text
                return text
            if delta.get("type") == "input_json_delta":
                self._partial_json.setdefault(index, []).append(delta.get("partial_json", ""))
        elif kind == "content_block_stop":
            index = event["index"]
            parts = self._partial_json.pop(index, None)
            if parts:
                try:
                    self._blocks[index]["input"] = json.loads("".join(parts))
                except ValueError as exc:
                    raise ModelCallError("Malformed tool input in model stream") from exc
        elif kind == "message_delta":
            self._stop_reason = event.get("delta", {}).get("stop_reason", self._stop_reason)
        elif kind == "message_stop":
            blocks = [self._blocks[i] for i in sorted(self._blocks)]
            self._final = _message_from_blocks(blocks, self._stop_reason)
        elif kind == "error":
            error = event.get("error", {})
            raise ModelCallError(
                f"Model stream error: {error.get('message', 'unknown')}",
                code=error.get("type"),
                details=error,
            )
        return None


class AnthropicModelClient(ModelClient):
    """:class:`ModelClient` for the Anthropic Messages API over :mod:`httpx`.

    Usage::

        model = AnthropicModelClient.from_config(BuilderConfig.from_env())
        stream = model.stream(system="...", messages=[...], tools=[...])
        async for text in stream:
            print(text, end="")
        message = await stream.final_message()
        await model.close()

    The underlying :class:`httpx.AsyncClient` is created on first use.
    *transport* lets tests substitute :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com",
        max_tokens: int = 4096,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls, config: BuilderConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> AnthropicModelClient:
        """Raises :class:`ConfigurationError` when no API key is configured."""
        if not config.anthropic_api_key:
            raise ConfigurationError(
                "No model API key configured; set ANTHROPIC_API_KEY",
                code="missing_api_key",
                status_code=500,
            )
        return cls(
            config.anthropic_api_key,
            model=config.model,
            base_url=config.anthropic_base_url,
            max_tokens=config.max_tokens,
            timeout=config.turn_budget_seconds,
            transport=transport,
        )

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "x-api-key": self._api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def _payload(
        self,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "system": system,
            "messages": messages,
        }
        if tools:
            payload["tools"] = tools
        return payload

    def stream(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
    ) -> ModelStream:
        payload = self._payload(system, list(messages), max_tokens, tools)
        payload["stream"] = True
        logger.debug("model_stream_requested", model=self._model, messages=len(messages))
        return AnthropicStream(self._http(), payload)

    async def complete(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> ModelMessage:
        payload = self._payload(system, list(messages), max_tokens)
        try:
            resp = await self._http().post(_MESSAGES_PATH, json=payload)
        except httpx.HTTPError as exc:
            raise ModelCallError(f"Model request failed: {exc}", code="transport_error") from exc

        if resp.status_code >= 400:
            raise _error_from_response(resp.status_code, resp.content)
        try:
            body: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise ModelCallError(f"Non-JSON model response: {resp.text[:200]}") from exc
        return _message_from_blocks(body.get("content", []), body.get("stop_reason"))
