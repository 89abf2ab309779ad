"""Tests for agent/tools.py (registry and concurrent execution)."""
from __future__ import annotations

import asyncio
from typing import Any

import pytest

from landing_builder.agent.tools import (
    ToolContext,
    ToolDefinition,
    ToolOutput,
    ToolRegistry,
    execute_tools,
)
from landing_builder.core.exceptions import ConfigurationError, ToolExecutionError
from landing_builder.core.types import ToolUseBlock


def _tool(name: str, handler) -> ToolDefinition:
    return ToolDefinition(name=name, description=name, handler=handler)


async def _echo(input: dict[str, Any], context: ToolContext) -> str:
    return f"echo:{input.get('value', '')}"


def _registry(*tools: ToolDefinition) -> ToolRegistry:
    return ToolRegistry([_tool("consult_advisor", _echo), *tools])


@pytest.fixture
def tool_context(make_session_at) -> ToolContext:
    return ToolContext(project_id="proj-1", session=make_session_at(0))


class TestToolRegistry:
    def test_requires_advisor_tool(self) -> None:
        with pytest.raises(ConfigurationError, match="consult_advisor"):
            ToolRegistry([_tool("design_brand", _echo)])

    def test_rejects_duplicates(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate"):
            _registry(_tool("design_brand", _echo), _tool("design_brand", _echo))

    def test_schemas(self) -> None:
        registry = _registry(_tool("design_brand", _echo))
        schemas = registry.schemas()
        assert [s["name"] for s in schemas] == ["consult_advisor", "design_brand"]
        assert set(schemas[0]) == {"name", "description", "input_schema"}

    def test_validate_reports_missing_stage_tools(self) -> None:
        registry = _registry(_tool("design_brand", _echo))
        missing = registry.validate()
        assert "design_brand" not in missing
        assert "create_repo" in missing

    def test_contains_and_len(self) -> None:
        registry = _registry(_tool("design_brand", _echo))
        assert "design_brand" in registry
        assert "create_repo" not in registry
        assert len(registry) == 2


class TestExecuteTools:
    async def test_results_in_request_order(self, tool_context: ToolContext) -> None:
        async def slow(input: dict[str, Any], context: ToolContext) -> str:
            await asyncio.sleep(0.05)
            return "slow"

        async def fast(input: dict[str, Any], context: ToolContext) -> str:
            return "fast"

        registry = _registry(_tool("slow", slow), _tool("fast", fast))
        calls = [
            ToolUseBlock(id="a", name="slow"),
            ToolUseBlock(id="b", name="fast"),
        ]
        results = await execute_tools(registry, calls, tool_context, timeout=1.0)
        assert [(r.id, r.result_content) for r in results] == [("a", "slow"), ("b", "fast")]

    async def test_tools_run_concurrently(self, tool_context: ToolContext) -> None:
        started: list[str] = []
        gate = asyncio.Event()

        async def waiter(input: dict[str, Any], context: ToolContext) -> str:
            started.append(input["n"])
            if len(started) == 2:
                gate.set()
            await asyncio.wait_for(gate.wait(), timeout=1.0)
            return "done"

        registry = _registry(_tool("waiter", waiter))
        calls = [
            ToolUseBlock(id="1", name="waiter", input={"n": "1"}),
            ToolUseBlock(id="2", name="waiter", input={"n": "2"}),
        ]
        results = await execute_tools(registry, calls, tool_context, timeout=2.0)
        assert all(not r.is_error for r in results)

    async def test_failure_is_local(self, tool_context: ToolContext) -> None:
        async def broken(input: dict[str, Any], context: ToolContext) -> str:
            raise ToolExecutionError("repo already exists")

        registry = _registry(_tool("broken", broken))
        calls = [
            ToolUseBlock(id="x", name="broken"),
            ToolUseBlock(id="y", name="consult_advisor", input={"value": "ok"}),
        ]
        results = await execute_tools(registry, calls, tool_context, timeout=1.0)
        assert results[0].is_error
        assert "repo already exists" in results[0].result_content
        assert not results[1].is_error
        assert results[1].result_content == "echo:ok"

    async def test_timeout_becomes_error(self, tool_context: ToolContext) -> None:
        async def hang(input: dict[str, Any], context: ToolContext) -> str:
            await asyncio.sleep(10)
            return "never"

        registry = _registry(_tool("hang", hang))
        results = await execute_tools(
            registry, [ToolUseBlock(id="h", name="hang")], tool_context, timeout=0.05
        )
        assert results[0].is_error
        assert "timed out" in results[0].result_content

    async def test_unknown_tool(self, tool_context: ToolContext) -> None:
        results = await execute_tools(
            _registry(), [ToolUseBlock(id="u", name="nope")], tool_context, timeout=1.0
        )
        assert results[0].is_error
        assert results[0].to_result_block() == {
            "type": "tool_result",
            "tool_use_id": "u",
            "content": "Error: unknown tool 'nope'",
            "is_error": True,
        }

    async def test_tool_output_artifacts(self, tool_context: ToolContext) -> None:
        async def deploy(input: dict[str, Any], context: ToolContext) -> ToolOutput:
            return ToolOutput(content="deployed", artifacts={"siteUrl": "https://x.app"})

        registry = _registry(_tool("check_deploy_status", deploy))
        results = await execute_tools(
            registry, [ToolUseBlock(id="d", name="check_deploy_status")], tool_context, timeout=1.0
        )
        assert results[0].artifacts == {"siteUrl": "https://x.app"}
        assert results[0].result_content == "deployed"

    async def test_scratch_is_shared(self, tool_context: ToolContext) -> None:
        async def writer(input: dict[str, Any], context: ToolContext) -> str:
            context.scratch["brand"] = "teal"
            return "ok"

        registry = _registry(_tool("writer", writer))
        await execute_tools(registry, [ToolUseBlock(id="w", name="writer")], tool_context, timeout=1.0)
        assert tool_context.scratch == {"brand": "teal"}

    async def test_empty_batch(self, tool_context: ToolContext) -> None:
        assert await execute_tools(_registry(), [], tool_context, timeout=1.0) == []
