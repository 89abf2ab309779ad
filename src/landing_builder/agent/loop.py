"""The bounded tool-calling loop behind every inbound turn.

Each round streams one model response. Text is forwarded as it arrives;
requested tools run concurrently; their results go back to the model in the
next round. The loop ends when the model stops asking for tools (and the
advisor gate is satisfied or out of retries), or when the round cap or the
turn's wall-clock budget is reached. Exactly one signal event closes the
stream.
"""

from __future__ import annotations

import time
from typing import Any, AsyncIterator

import structlog

from landing_builder.agent.advisors import advisor_name
from landing_builder.agent.tools import ToolContext, ToolRegistry, execute_tools
from landing_builder.build.history import ConversationHistory
from landing_builder.build.plan import ADVISOR_TOOL_NAME, COPY_STAGES
from landing_builder.build.session import (
    advance_past_checkpoint,
    advance_step,
    check_advisor_requirements,
    stage_key,
    track_advisor_call,
)
from landing_builder.build.signals import determine_signal
from landing_builder.core.config import BuilderConfig
from landing_builder.core.constants import SignalAction, TurnRole
from landing_builder.core.events import AdvisorSegment, EndSignalEvent, StreamEvent, TextDelta
from landing_builder.core.types import BuildSession, ModelMessage, ToolInvocation
from landing_builder.llm.base import ModelClient
from landing_builder.store.base import SessionStore

logger = structlog.get_logger(__name__)


class TurnContext:
    """Mutable state for one inbound turn.

    Created by the service after the user turn has been recorded, so
    ``messages`` already ends with it. Nothing here outlives the turn except
    what the loop writes back through the store.
    """

    def __init__(
        self,
        *,
        project_id: str,
        session: BuildSession,
        history: ConversationHistory,
        system_prompt: str,
        registry: ToolRegistry,
        history_window: int = 40,
    ) -> None:
        self.project_id = project_id
        self.session = session
        self.history = history
        self.system_prompt = system_prompt
        self.registry = registry
        self.messages: list[dict[str, Any]] = history.to_model_messages(history_window)
        self.round_texts: list[str] = []
        self.enforcement_retries: dict[str, int] = {}
        self.scratch: dict[str, Any] = {}
        self.rounds = 0

    @property
    def assistant_text(self) -> str:
        return "\n\n".join(t for t in self.round_texts if t)


class AgentLoop:
    """Drives :class:`TurnContext` through model rounds.

    Usage::

        loop = AgentLoop(model, store, config)
        async for event in loop.run(ctx):
            yield encode_event(event)

    Model and store failures propagate out of :meth:`run`; the caller decides
    how a broken stream is reported.
    """

    def __init__(self, model: ModelClient, store: SessionStore, config: BuilderConfig) -> None:
        self._model = model
        self._store = store
        self._config = config

    async def run(self, ctx: TurnContext) -> AsyncIterator[StreamEvent]:
        started = time.monotonic()
        tools = ctx.registry.schemas()

        while True:
            if ctx.rounds >= self._config.max_rounds:
                logger.warning(
                    "round_cap_reached", rounds=ctx.rounds, step=ctx.session.current_step
                )
                break
            if time.monotonic() - started > self._config.turn_budget_seconds:
                logger.warning(
                    "turn_budget_exhausted",
                    rounds=ctx.rounds,
                    budget_seconds=self._config.turn_budget_seconds,
                )
                break
            ctx.rounds += 1

            stream = self._model.stream(
                system=ctx.system_prompt,
                messages=ctx.messages,
                tools=tools,
                max_tokens=self._config.max_tokens,
            )
            chunks: list[str] = []
            async for delta in stream:
                chunks.append(delta)
                yield TextDelta(text=delta)
            message = await stream.final_message()
            ctx.round_texts.append("".join(chunks))

            calls = message.tool_uses
            logger.debug("model_round", round=ctx.rounds, tool_calls=len(calls))
            if not calls:
                correction = self._advisor_correction(ctx)
                if correction is None:
                    break
                param = message.to_param()
                # The API rejects assistant entries with empty content.
                if param["content"]:
                    ctx.messages.append(param)
                ctx.messages.append({"role": TurnRole.USER.value, "content": correction})
                continue

            results = await execute_tools(
                ctx.registry,
                calls,
                ToolContext(
                    project_id=ctx.project_id,
                    session=ctx.session.model_copy(deep=True),
                    scratch=ctx.scratch,
                ),
                timeout=self._config.tool_timeout_seconds,
            )
            for invocation in results:
                ctx.session.artifacts.update(invocation.artifacts)
            advance_step(ctx.session, [c.name for c in calls])

            for invocation in results:
                if invocation.name == ADVISOR_TOOL_NAME:
                    segment = self._record_consultation(ctx.session, invocation)
                    if segment is not None:
                        yield segment

            self._append_round(ctx, message, results)
            ctx.session.touch()
            await self._store.save_session(ctx.session)

        async for event in self._finish(ctx):
            yield event

    # ------------------------------------------------------------------ #
    # Round helpers
    # ------------------------------------------------------------------ #

    def _advisor_correction(self, ctx: TurnContext) -> str | None:
        """Corrective instruction if the model is ending the turn too early."""
        session = ctx.session
        if session.current_step not in COPY_STAGES:
            return None
        correction = check_advisor_requirements(session)
        if correction is None:
            return None

        key = stage_key(session)
        spent = ctx.enforcement_retries.get(key, 0)
        if spent >= self._config.max_enforcement_retries:
            logger.warning(
                "advisor_enforcement_exhausted",
                stage=key,
                retries=spent,
                consulted=sorted(session.advisors_consulted),
            )
            return None
        ctx.enforcement_retries[key] = spent + 1
        logger.info("advisor_enforcement_retry", stage=key, attempt=spent + 1)
        return correction

    @staticmethod
    def _record_consultation(
        session: BuildSession, invocation: ToolInvocation
    ) -> AdvisorSegment | None:
        advisor_id = str(invocation.input.get("advisorId", ""))
        if not advisor_id:
            logger.warning("advisor_consultation_failed", error=invocation.result_content)
            return None
        # Failed consultations count as consulted.
        track_advisor_call(session, advisor_id)
        if invocation.is_error:
            logger.warning(
                "advisor_consultation_failed",
                advisor=advisor_id,
                error=invocation.result_content,
            )
            return None
        return AdvisorSegment(
            advisor_id=advisor_id,
            advisor_name=advisor_name(advisor_id),
            content=invocation.result_content,
        )

    @staticmethod
    def _append_round(
        ctx: TurnContext, message: ModelMessage, results: list[ToolInvocation]
    ) -> None:
        ctx.messages.append(message.to_param())
        ctx.messages.append(
            {
                "role": TurnRole.USER.value,
                "content": [invocation.to_result_block() for invocation in results],
            }
        )

    async def _finish(self, ctx: TurnContext) -> AsyncIterator[StreamEvent]:
        text = ctx.assistant_text
        if text:
            ctx.history.append(TurnRole.ASSISTANT, text)
            await self._store.save_history(ctx.project_id, ctx.history.turns)

        signal = determine_signal(ctx.session, self._config.poll_url(ctx.project_id))
        if signal.action == SignalAction.CHECKPOINT:
            advance_past_checkpoint(ctx.session)
        await self._store.save_session(ctx.session)
        logger.info(
            "turn_finished",
            rounds=ctx.rounds,
            signal=signal.action,
            step=ctx.session.current_step,
        )
        # Saved before yielding: the consumer may stop reading after the signal.
        yield EndSignalEvent(signal=signal)
