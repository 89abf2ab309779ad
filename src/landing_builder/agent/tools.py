"""Tool definitions, the registry the agent loop draws from, and the
concurrent executor used for each tool round.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

import structlog
from pydantic import BaseModel, Field

from landing_builder.build.plan import ADVISOR_TOOL_NAME, unmapped_stage_tools
from landing_builder.core.exceptions import ConfigurationError
from landing_builder.core.types import BuildSession, ToolInvocation, ToolUseBlock

logger = structlog.get_logger(__name__)


class ToolOutput(BaseModel):
    """Handler return value when a tool produces artifacts as well as text.

    Artifacts are merged into ``BuildSession.artifacts`` after the round,
    e.g. ``{"siteUrl": "https://..."}`` from a deploy tool.
    """

    content: str
    artifacts: dict[str, Any] = Field(default_factory=dict)


class ToolContext:
    """What a tool handler can see about the turn it runs in.

    ``session`` is a snapshot taken at the start of the round; handlers must
    not rely on mutating it. ``scratch`` is shared by every tool call of one
    inbound turn and discarded afterwards.
    """

    def __init__(
        self,
        project_id: str,
        session: BuildSession,
        scratch: dict[str, Any] | None = None,
    ) -> None:
        self.project_id = project_id
        self.session = session
        self.scratch: dict[str, Any] = scratch if scratch is not None else {}


# Returns str or ToolOutput.
ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[Any]]


class ToolDefinition(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    handler: ToolHandler

    def to_schema(self) -> dict[str, Any]:
        """The entry sent in the model request's ``tools`` list."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


class ToolRegistry:
    """Named set of tools available to the agent.

    Usage::

        registry = ToolRegistry([consult_advisor, design_brand, create_repo])
        registry.validate()   # warns about stage-table tools nobody provides
        schemas = registry.schemas()

    Raises:
        ConfigurationError: On duplicate names, or unless exactly one tool
            is named ``consult_advisor``.
    """

    def __init__(self, tools: Iterable[ToolDefinition]) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ConfigurationError(
                    f"Duplicate tool name: {tool.name!r}", code="duplicate_tool"
                )
            self._tools[tool.name] = tool
        if ADVISOR_TOOL_NAME not in self._tools:
            raise ConfigurationError(
                f"Tool registry must include {ADVISOR_TOOL_NAME!r}",
                code="missing_advisor_tool",
            )

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    def validate(self) -> list[str]:
        """Log a warning for each stage-table tool with no registered handler.

        Such a tool can never be called, so the stage it completes is only
        reachable through an external continue.

        Returns:
            The missing tool names, sorted.
        """
        missing = unmapped_stage_tools(self._tools)
        for name in missing:
            logger.warning("stage_tool_not_registered", tool=name)
        return missing

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


async def _run_one(
    registry: ToolRegistry,
    call: ToolUseBlock,
    context: ToolContext,
    timeout: float,
) -> ToolInvocation:
    invocation = ToolInvocation(id=call.id, name=call.name, input=call.input)
    tool = registry.get(call.name)
    if tool is None:
        invocation.is_error = True
        invocation.result_content = f"Error: unknown tool {call.name!r}"
        logger.warning("unknown_tool_requested", tool=call.name)
        return invocation

    try:
        output = await asyncio.wait_for(tool.handler(call.input, context), timeout=timeout)
    except asyncio.TimeoutError:
        invocation.is_error = True
        invocation.result_content = f"Error: tool {call.name!r} timed out after {timeout}s"
        logger.warning("tool_timeout", tool=call.name, timeout=timeout)
        return invocation
    except Exception as exc:
        invocation.is_error = True
        invocation.result_content = f"Error: {exc}"
        logger.warning("tool_failed", tool=call.name, error=str(exc))
        return invocation

    if isinstance(output, ToolOutput):
        invocation.result_content = output.content
        invocation.artifacts = dict(output.artifacts)
    else:
        invocation.result_content = str(output)
    logger.debug("tool_completed", tool=call.name)
    return invocation


async def execute_tools(
    registry: ToolRegistry,
    calls: Sequence[ToolUseBlock],
    context: ToolContext,
    *,
    timeout: float,
) -> list[ToolInvocation]:
    """Run every requested tool concurrently and wait for all of them.

    A failing, timed-out or unknown tool yields an error-tagged invocation
    instead of raising, so one bad tool never aborts the round. The result
    list is in request order and each entry carries its request's id.
    """
    if not calls:
        return []
    return list(
        await asyncio.gather(*(_run_one(registry, call, context, timeout) for call in calls))
    )
