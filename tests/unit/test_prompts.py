"""Tests for agent/prompts.py (DefaultPromptComposer)."""
from __future__ import annotations

from landing_builder.agent.prompts import DefaultPromptComposer
from landing_builder.core.constants import BuildMode
from landing_builder.core.types import Project


async def test_interactive_prompt_lists_checkpoints(project: Project, make_session_at) -> None:
    prompt = await DefaultPromptComposer().compose(
        project, BuildMode.INTERACTIVE, make_session_at(0)
    )
    assert "Mode: Interactive" in prompt
    assert "1 (Extract & Validate Ingredients)" in prompt
    assert "Shelfie" in prompt
    assert "consult_advisor" in prompt


async def test_autonomous_prompt(project: Project, make_session_at) -> None:
    prompt = await DefaultPromptComposer().compose(
        project, BuildMode.AUTONOMOUS, make_session_at(2, mode=BuildMode.AUTONOMOUS)
    )
    assert "Mode: Autonomous" in prompt
    assert "3. Write Hero [active] <- current" in prompt


async def test_current_section_shown(project: Project, make_session_at) -> None:
    prompt = await DefaultPromptComposer().compose(
        project, BuildMode.INTERACTIVE, make_session_at(3, substep=1)
    )
    assert "Current section: 4b (Features)" in prompt


async def test_extra_sections_appended(project: Project, make_session_at) -> None:
    composer = DefaultPromptComposer(extra_sections=["## Framework\nUse PAS."])
    prompt = await composer.compose(project, BuildMode.INTERACTIVE, make_session_at(0))
    assert prompt.endswith("## Framework\nUse PAS.")
