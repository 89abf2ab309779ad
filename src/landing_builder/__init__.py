"""Landing Builder: an advisor-guided agent that builds landing pages stage by stage."""

from landing_builder.__version__ import __version__

from landing_builder.agent.advisors import ADVISORS, Advisor, create_consult_advisor_tool, get_advisor
from landing_builder.agent.loop import AgentLoop, TurnContext
from landing_builder.agent.prompts import DefaultPromptComposer, PromptComposer
from landing_builder.agent.service import BuildService, parse_turn
from landing_builder.agent.tools import (
    ToolContext,
    ToolDefinition,
    ToolOutput,
    ToolRegistry,
    execute_tools,
)
from landing_builder.build.history import ConversationHistory
from landing_builder.build.plan import BUILD_STEPS, REQUIRED_ADVISORS, TOOL_STAGE_RULES
from landing_builder.build.session import (
    advance_past_checkpoint,
    advance_step,
    advance_substep,
    advance_to_step,
    check_advisor_requirements,
    create_session,
    track_advisor_call,
)
from landing_builder.build.signals import determine_signal
from landing_builder.core.config import BuilderConfig
from landing_builder.core.constants import BuildMode, SignalAction, StepStatus, TurnRole
from landing_builder.core.events import (
    AdvisorSegment,
    EndSignalEvent,
    StreamErrorEvent,
    StreamEvent,
    TextDelta,
    encode_event,
    parse_events,
)
from landing_builder.core.exceptions import (
    BuilderError,
    ConfigurationError,
    InvalidTurnError,
    ModelCallError,
    ProjectNotFoundError,
    StoreError,
    StreamError,
    ToolExecutionError,
)
from landing_builder.core.types import (
    BuildSession,
    BuildStatus,
    BuildStep,
    CheckpointSignal,
    CompleteSignal,
    ContinueSignal,
    ConversationTurn,
    PollSignal,
    Project,
    SiteResult,
    StreamEndSignal,
)
from landing_builder.llm.anthropic import AnthropicModelClient
from landing_builder.llm.base import ModelClient, ModelStream
from landing_builder.llm.mock import MockModelClient
from landing_builder.store.base import ProjectCatalog, SessionStore
from landing_builder.store.memory import InMemoryProjectCatalog, InMemorySessionStore
from landing_builder.store.sqlite import SQLiteSessionStore
from landing_builder.utils.logging import configure_logging

__all__ = [
    "__version__",
    # service
    "BuildService",
    "BuilderConfig",
    "parse_turn",
    "AgentLoop",
    "TurnContext",
    "PromptComposer",
    "DefaultPromptComposer",
    # tools and advisors
    "ToolDefinition",
    "ToolOutput",
    "ToolContext",
    "ToolRegistry",
    "execute_tools",
    "Advisor",
    "ADVISORS",
    "get_advisor",
    "create_consult_advisor_tool",
    # build state
    "BUILD_STEPS",
    "REQUIRED_ADVISORS",
    "TOOL_STAGE_RULES",
    "BuildSession",
    "BuildStatus",
    "BuildStep",
    "ConversationHistory",
    "ConversationTurn",
    "Project",
    "create_session",
    "advance_step",
    "advance_substep",
    "advance_to_step",
    "advance_past_checkpoint",
    "track_advisor_call",
    "check_advisor_requirements",
    "determine_signal",
    # signals and events
    "StreamEndSignal",
    "CheckpointSignal",
    "ContinueSignal",
    "PollSignal",
    "CompleteSignal",
    "SiteResult",
    "StreamEvent",
    "TextDelta",
    "AdvisorSegment",
    "EndSignalEvent",
    "StreamErrorEvent",
    "encode_event",
    "parse_events",
    # constants
    "BuildMode",
    "StepStatus",
    "TurnRole",
    "SignalAction",
    # model clients
    "ModelClient",
    "ModelStream",
    "AnthropicModelClient",
    "MockModelClient",
    # stores
    "SessionStore",
    "ProjectCatalog",
    "InMemorySessionStore",
    "InMemoryProjectCatalog",
    "SQLiteSessionStore",
    # errors
    "BuilderError",
    "InvalidTurnError",
    "ProjectNotFoundError",
    "ConfigurationError",
    "ToolExecutionError",
    "ModelCallError",
    "StoreError",
    "StreamError",
    # logging
    "configure_logging",
]
