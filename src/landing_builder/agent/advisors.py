from __future__ import annotations

from typing import Any, Literal

import structlog
from pydantic import BaseModel

from landing_builder.agent.tools import ToolContext, ToolDefinition
from landing_builder.build.plan import ADVISOR_TOOL_NAME
from landing_builder.core.config import BuilderConfig
from landing_builder.core.exceptions import ToolExecutionError
from landing_builder.core.types import Project
from landing_builder.llm.base import ModelClient

logger = structlog.get_logger(__name__)

NO_RESPONSE = "(No response from advisor)"


class Advisor(BaseModel):
    id: str
    name: str
    role: Literal["author", "critic", "editor", "strategist"]
    expertise: str
    system_prompt: str

    model_config = {"frozen": True}


def _persona(name: str, focus: str) -> str:
    return (
        f"You are {name}. {focus} "
        "Answer the builder's question directly and concretely. Point out the "
        "single most important change first, then any secondary notes. Keep it "
        "under 250 words."
    )


ADVISORS: tuple[Advisor, ...] = (
    Advisor(
        id="april-dunford",
        name="April Dunford",
        role="strategist",
        expertise="Positioning: competitive alternatives, unique value, best-fit customers.",
        system_prompt=_persona(
            "April Dunford, a positioning strategist",
            "You judge whether copy makes the product's differentiated value obvious "
            "to its best-fit customers compared with their real alternatives.",
        ),
    ),
    Advisor(
        id="copywriter",
        name="Brand Copywriter",
        role="author",
        expertise="Voice, headlines and clarity of landing page copy.",
        system_prompt=_persona(
            "a senior brand copywriter",
            "You write and sharpen headlines and section copy in the product's voice.",
        ),
    ),
    Advisor(
        id="shirin-oreizy",
        name="Shirin Oreizy",
        role="critic",
        expertise="Behavioral science: friction, motivation and cognitive load.",
        system_prompt=_persona(
            "Shirin Oreizy, a behavioral design expert",
            "You look for friction, missing motivation and cognitive overload in how "
            "a visitor reads the page.",
        ),
    ),
    Advisor(
        id="joanna-wiebe",
        name="Joanna Wiebe",
        role="critic",
        expertise="Conversion copywriting: voice-of-customer, objections, CTAs.",
        system_prompt=_persona(
            "Joanna Wiebe, a conversion copywriter",
            "You check that copy uses the customer's own language, handles objections "
            "and ends every section on a clear next step.",
        ),
    ),
    Advisor(
        id="oli-gardner",
        name="Oli Gardner",
        role="critic",
        expertise="Landing page structure, attention ratio and conversion-centered design.",
        system_prompt=_persona(
            "Oli Gardner, a landing page conversion expert",
            "You review page structure, attention ratio and whether every element "
            "serves the single conversion goal.",
        ),
    ),
    Advisor(
        id="richard-rumelt",
        name="Richard Rumelt",
        role="strategist",
        expertise="Strategy: diagnosis, guiding policy and coherent action.",
        system_prompt=_persona(
            "Richard Rumelt, a strategy advisor",
            "You test whether the page reflects a clear diagnosis of the customer's "
            "problem and a coherent answer to it.",
        ),
    ),
    Advisor(
        id="seo-expert",
        name="SEO Expert",
        role="critic",
        expertise="Search intent, keywords, titles and meta descriptions.",
        system_prompt=_persona(
            "an SEO specialist",
            "You review titles, headings and meta copy for search intent and keyword fit.",
        ),
    ),
)

_BY_ID: dict[str, Advisor] = {a.id: a for a in ADVISORS}


def get_advisor(advisor_id: str) -> Advisor | None:
    return _BY_ID.get(advisor_id)


def advisor_name(advisor_id: str) -> str:
    """Display name for *advisor_id*, falling back to the id itself."""
    advisor = _BY_ID.get(advisor_id)
    return advisor.name if advisor else advisor_id


def _project_brief(project: Project) -> str:
    lines = [f"Product: {project.name}"]
    if project.description:
        lines.append(f"Description: {project.description}")
    if project.target_user:
        lines.append(f"Target user: {project.target_user}")
    if project.problem_solved:
        lines.append(f"Problem solved: {project.problem_solved}")
    return "\n".join(lines)


def create_consult_advisor_tool(
    model: ModelClient,
    project: Project,
    config: BuilderConfig | None = None,
) -> ToolDefinition:
    """Build the ``consult_advisor`` tool bound to *project*.

    The tool makes one non-streaming model call with the advisor's persona
    as the system prompt. Its text result is what the agent loop streams to
    the client as an advisor segment.

    Raises (from the handler):
        ToolExecutionError: Missing ``advisorId``/``question`` or an unknown
            advisor id. The loop turns this into an error-tagged result.
    """
    cfg = config or BuilderConfig()
    brief = _project_brief(project)

    async def handler(input: dict[str, Any], context: ToolContext) -> str:
        advisor_id = input.get("advisorId")
        question = input.get("question")
        if not advisor_id or not question:
            raise ToolExecutionError(
                "consult_advisor requires 'advisorId' and 'question'", code="invalid_input"
            )
        advisor = get_advisor(advisor_id)
        if advisor is None:
            raise ToolExecutionError(
                f"Unknown advisor: {advisor_id!r}",
                code="unknown_advisor",
                details={"known": sorted(_BY_ID)},
            )

        message = f"Question: {question}"
        if input.get("context"):
            message += f"\n\nBuild context:\n{input['context']}"
        message += f"\n\nProduct facts for reference:\n{brief}"

        logger.info("advisor_consulted", advisor=advisor_id, project_id=context.project_id)
        reply = await model.complete(
            system=advisor.system_prompt,
            messages=[{"role": "user", "content": message}],
            max_tokens=cfg.advisor_max_tokens,
        )
        return reply.text or NO_RESPONSE

    return ToolDefinition(
        name=ADVISOR_TOOL_NAME,
        description=(
            "Consult a specialist advisor for their expert opinion on a specific "
            "question. Use this when a decision falls outside your core expertise."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "advisorId": {
                    "type": "string",
                    "enum": [a.id for a in ADVISORS],
                    "description": "The advisor to consult",
                },
                "question": {
                    "type": "string",
                    "description": "The specific question to ask the advisor",
                },
                "context": {
                    "type": "string",
                    "description": "Optional build context, e.g. the current hero copy",
                },
            },
            "required": ["advisorId", "question"],
        },
        handler=handler,
    )
