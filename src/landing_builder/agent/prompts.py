"""System prompt assembly for a build turn."""

from __future__ import annotations

from typing import Protocol

from landing_builder.agent.advisors import ADVISORS
from landing_builder.build.plan import BUILD_STEPS, SUBSTAGE_LABELS
from landing_builder.build.signals import substep_label
from landing_builder.core.constants import BuildMode
from landing_builder.core.types import BuildSession, Project


class PromptComposer(Protocol):
    """Structural type for anything that can build the turn's system prompt.

    Called once per inbound turn, before streaming starts, so failures here
    surface as a status code rather than a broken stream.
    """

    async def compose(self, project: Project, mode: BuildMode, session: BuildSession) -> str: ...


_PERSONA = (
    "You are a landing page strategist building a page for a product. Work "
    "through the build stages in order, using the tools when you reach the "
    "stage they belong to."
)

_INTERACTIVE = (
    "## Mode: Interactive\n"
    "At the end of each checkpoint stage ({checkpoints}) stop and present your "
    "work for feedback. Summarise what you did and what you would like "
    "feedback on."
)

_AUTONOMOUS = (
    "## Mode: Autonomous\n"
    "Run through every stage without stopping. Narrate your progress as you "
    "go; the user is watching in real time."
)


class DefaultPromptComposer:
    """Plain-text composer: persona, product facts, mode, stage plan and advisors.

    *extra_sections* are appended verbatim, e.g. a framework document.
    """

    def __init__(self, extra_sections: list[str] | None = None) -> None:
        self._extra = list(extra_sections or [])

    async def compose(self, project: Project, mode: BuildMode, session: BuildSession) -> str:
        sections = [_PERSONA, self._product_section(project), self._mode_section(mode)]
        sections.append(self._plan_section(session))
        sections.append(self._advisor_section())
        sections.extend(self._extra)
        return "\n\n".join(sections)

    @staticmethod
    def _product_section(project: Project) -> str:
        lines = ["## Product", f"Name: {project.name}"]
        if project.description:
            lines.append(f"Description: {project.description}")
        if project.target_user:
            lines.append(f"Target user: {project.target_user}")
        if project.problem_solved:
            lines.append(f"Problem solved: {project.problem_solved}")
        if project.url:
            lines.append(f"Existing site: {project.url}")
        return "\n".join(lines)

    @staticmethod
    def _mode_section(mode: BuildMode) -> str:
        if mode == BuildMode.AUTONOMOUS:
            return _AUTONOMOUS
        checkpoints = ", ".join(
            f"{i + 1} ({s.name})" for i, s in enumerate(BUILD_STEPS) if s.checkpoint
        )
        return _INTERACTIVE.format(checkpoints=checkpoints)

    @staticmethod
    def _plan_section(session: BuildSession) -> str:
        lines = ["## Build stages"]
        for i, step in enumerate(BUILD_STEPS):
            marker = " <- current" if i == session.current_step else ""
            lines.append(f"{i + 1}. {step.name} [{session.steps[i].status}]{marker}")
            if step.substeps and i == session.current_step:
                lines.append(
                    f"   Current section: {substep_label(i, session.current_substep)} "
                    f"of {len(SUBSTAGE_LABELS)}"
                )
        return "\n".join(lines)

    @staticmethod
    def _advisor_section() -> str:
        lines = [
            "## Advisors",
            "Use the consult_advisor tool when a decision falls outside your core "
            "expertise. Some stages require specific advisors before you present "
            "your work.",
        ]
        lines.extend(f"- {a.id} ({a.name}): {a.expertise}" for a in ADVISORS)
        return "\n".join(lines)
