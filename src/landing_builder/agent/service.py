"""Inbound turn handling: everything between a chat request and the agent loop."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, AsyncIterator

import structlog
from pydantic import TypeAdapter, ValidationError

from landing_builder.agent.advisors import create_consult_advisor_tool
from landing_builder.agent.loop import AgentLoop, TurnContext
from landing_builder.agent.prompts import DefaultPromptComposer, PromptComposer
from landing_builder.agent.tools import ToolDefinition, ToolRegistry
from landing_builder.build.history import ConversationHistory
from landing_builder.build.plan import BUILD_STEPS, substage_step_index
from landing_builder.build.session import (
    advance_to_step,
    advance_to_substep,
    create_session,
)
from landing_builder.build.signals import substep_label
from landing_builder.core.config import BuilderConfig
from landing_builder.core.constants import TurnRole
from landing_builder.core.events import StreamErrorEvent, StreamEvent
from landing_builder.core.exceptions import (
    BuilderError,
    ConfigurationError,
    InvalidTurnError,
    ProjectNotFoundError,
    StreamError,
)
from landing_builder.core.types import (
    BuildSession,
    BuildStatus,
    ContinueTurn,
    ModeSelectTurn,
    Project,
    TurnRequest,
    UserTurn,
)
from landing_builder.llm.anthropic import AnthropicModelClient
from landing_builder.llm.base import ModelClient
from landing_builder.store.base import ProjectCatalog, SessionStore
from landing_builder.utils.logging import bind_turn_context, configure_logging

logger = structlog.get_logger(__name__)

_TURN_ADAPTER: TypeAdapter[TurnRequest] = TypeAdapter(TurnRequest)

# Build tools for a project, excluding consult_advisor (added by the service).
ToolProvider = Callable[[Project], Iterable[ToolDefinition]]


def _no_tools(project: Project) -> list[ToolDefinition]:
    return []


def parse_turn(payload: dict[str, Any] | str | bytes) -> TurnRequest:
    """Validate a raw inbound turn.

    Raises:
        InvalidTurnError: For malformed JSON or an unknown / incomplete turn
            shape (``status_code`` 400).
    """
    try:
        if isinstance(payload, (str, bytes)):
            return _TURN_ADAPTER.validate_json(payload)
        return _TURN_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise InvalidTurnError(
            "Invalid turn request",
            code="invalid_turn",
            details={"errors": [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]},
            status_code=400,
        ) from exc


class BuildService:
    """Entry point for chat turns, status queries and resets.

    Usage::

        config = BuilderConfig.from_env()
        service = BuildService.from_config(
            config,
            store=InMemorySessionStore(config.session_ttl_seconds),
            catalog=InMemoryProjectCatalog([project]),
            tools=lambda project: [design_brand_tool, create_repo_tool],
        )
        events = await service.start_turn("p-1", {"type": "mode_select", "mode": "interactive"})
        async for event in events:
            ...

    :meth:`start_turn` does all validation and setup before it returns, so
    its exceptions carry a ``status_code``. Failures after that arrive as a
    final :class:`~landing_builder.core.events.StreamErrorEvent`.
    """

    def __init__(
        self,
        *,
        model: ModelClient,
        store: SessionStore,
        catalog: ProjectCatalog,
        config: BuilderConfig | None = None,
        composer: PromptComposer | None = None,
        tools: ToolProvider | None = None,
    ) -> None:
        self._model = model
        self._store = store
        self._catalog = catalog
        self._config = config or BuilderConfig()
        self._composer: PromptComposer = composer or DefaultPromptComposer()
        self._tools = tools or _no_tools
        self._loop = AgentLoop(model, store, self._config)
        self._registry_checked = False

    @classmethod
    def from_config(
        cls,
        config: BuilderConfig,
        *,
        store: SessionStore,
        catalog: ProjectCatalog,
        composer: PromptComposer | None = None,
        tools: ToolProvider | None = None,
        json_logs: bool = True,
    ) -> BuildService:
        """Configure logging at ``config.log_level`` and build a service
        backed by :class:`AnthropicModelClient`.

        Raises:
            ConfigurationError: When no model API key is configured.
        """
        configure_logging(config.log_level, json=json_logs)
        return cls(
            model=AnthropicModelClient.from_config(config),
            store=store,
            catalog=catalog,
            config=config,
            composer=composer,
            tools=tools,
        )

    @property
    def config(self) -> BuilderConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Chat turns
    # ------------------------------------------------------------------ #

    async def start_turn(
        self, project_id: str, payload: dict[str, Any] | str | bytes
    ) -> AsyncIterator[StreamEvent]:
        """Validate and set up one turn, then return its event stream.

        Raises:
            InvalidTurnError: Malformed turn, or a ``user``/``continue`` turn
                for a project with no build session.
            ProjectNotFoundError: Unknown project id.
            ConfigurationError: Project lookup or tool setup failed.
        """
        turn = parse_turn(payload)
        bind_turn_context(project_id, turn.type)
        project = await self._lookup(project_id)

        session = await self._store.get_session(project_id)
        history = ConversationHistory(await self._store.get_history(project_id))

        if isinstance(turn, ModeSelectTurn):
            session, content = self._select_mode(project_id, session, turn)
        elif session is None:
            raise InvalidTurnError(
                "No build in progress for this project; select a build mode first",
                code="no_session",
                status_code=400,
            )
        elif isinstance(turn, UserTurn):
            content = turn.content
        else:
            content = self._apply_continue(session, turn)

        registry = self._build_registry(project)
        system_prompt = await self._composer.compose(project, session.mode, session)

        history.append(TurnRole.USER, content)
        await self._store.save_session(session)
        await self._store.save_history(project_id, history.turns)
        logger.info("turn_started", step=session.current_step, mode=session.mode)

        ctx = TurnContext(
            project_id=project_id,
            session=session,
            history=history,
            system_prompt=system_prompt,
            registry=registry,
            history_window=self._config.history_window,
        )
        return self._guard(self._loop.run(ctx))

    async def _lookup(self, project_id: str) -> Project:
        try:
            project = await self._catalog.get_project(project_id)
        except BuilderError:
            raise
        except Exception as exc:
            raise ConfigurationError(
                f"Project lookup failed: {exc}", code="lookup_failed", status_code=500
            ) from exc
        if project is None:
            raise ProjectNotFoundError(
                f"Project not found: {project_id}", code="unknown_project", status_code=404
            )
        return project

    def _build_registry(self, project: Project) -> ToolRegistry:
        tools = [create_consult_advisor_tool(self._model, project, self._config)]
        tools.extend(self._tools(project))
        registry = ToolRegistry(tools)
        if not self._registry_checked:
            registry.validate()
            self._registry_checked = True
        return registry

    @staticmethod
    def _select_mode(
        project_id: str, session: BuildSession | None, turn: ModeSelectTurn
    ) -> tuple[BuildSession, str]:
        if session is None:
            session = create_session(project_id, turn.mode)
            logger.info("session_created", mode=turn.mode)
            return session, (
                f"Let's build the landing page in {turn.mode} mode. "
                f"Start with stage 1: {BUILD_STEPS[0].name}."
            )
        if session.mode != turn.mode:
            logger.info("mode_switched", from_mode=session.mode, to_mode=turn.mode)
            session.mode = turn.mode
            session.touch()
        step = session.current_step
        return session, (
            f"Switch to {turn.mode} mode and carry on from stage "
            f"{step + 1}: {BUILD_STEPS[step].name}."
        )

    @staticmethod
    def _apply_continue(session: BuildSession, turn: ContinueTurn) -> str:
        if turn.step is not None:
            advance_to_step(session, turn.step)
        if turn.substep is not None:
            advance_to_substep(session, turn.substep)

        step = session.current_step
        if step == substage_step_index() and session.current_substep > 0:
            return f"Continue. Proceed to section {substep_label(step, session.current_substep)}."
        return f"Continue. Proceed to stage {step + 1}: {BUILD_STEPS[step].name}."

    async def _guard(self, events: AsyncIterator[StreamEvent]) -> AsyncIterator[StreamEvent]:
        try:
            async for event in events:
                yield event
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, BuilderError)
                else StreamError(f"Build stream failed: {exc!r}", code="stream_failed")
            )
            logger.error("turn_stream_failed", error=str(error), exc_info=True)
            yield StreamErrorEvent(message=str(error))

    # ------------------------------------------------------------------ #
    # Status and reset
    # ------------------------------------------------------------------ #

    async def get_status(self, project_id: str) -> BuildStatus | None:
        session = await self._store.get_session(project_id)
        return BuildStatus.from_session(session) if session is not None else None

    async def reset(self, project_id: str) -> None:
        """Delete the session and its history. Idempotent."""
        await self._store.delete_session(project_id)
        await self._store.delete_history(project_id)
        logger.info("build_reset", project_id=project_id)

    async def close(self) -> None:
        await self._model.close()
        await self._store.close()
