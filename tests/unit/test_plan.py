"""Tests for build/plan.py (static stage plan and lookup tables)."""
from __future__ import annotations

from landing_builder.build.plan import (
    ADVISOR_TOOL_NAME,
    BUILD_STEPS,
    COPY_STAGES,
    REQUIRED_ADVISORS,
    SUBSTAGE_LABELS,
    TOOL_STAGE_RULES,
    deploy_step_index,
    last_step_index,
    max_mapped_stage,
    substage_count,
    substage_step_index,
    substep_letter,
    unmapped_stage_tools,
    validate_plan,
)


def test_plan_shape() -> None:
    assert len(BUILD_STEPS) == 8
    assert substage_step_index() == 3
    assert substage_count() == len(SUBSTAGE_LABELS) == 5
    assert deploy_step_index() == 6
    assert last_step_index() == 7


def test_checkpoint_stages() -> None:
    checkpoints = [i for i, s in enumerate(BUILD_STEPS) if s.checkpoint]
    assert checkpoints == [0, 2, 3, 5]


def test_validate_plan_passes_for_shipped_tables() -> None:
    validate_plan()


def test_advisor_tool_is_unmapped() -> None:
    assert ADVISOR_TOOL_NAME not in TOOL_STAGE_RULES


def test_required_advisor_keys_use_substep_letters() -> None:
    assert {"3a", "3b", "3c", "3d", "3e"} <= set(REQUIRED_ADVISORS)
    assert "3" not in REQUIRED_ADVISORS


def test_copy_stages_exclude_final_review() -> None:
    assert list(COPY_STAGES) == [0, 1, 2, 3]
    assert 5 not in COPY_STAGES


def test_substep_letter() -> None:
    assert substep_letter(0) == "a"
    assert substep_letter(4) == "e"


# ------------------------------------------------------------------ #
# max_mapped_stage
# ------------------------------------------------------------------ #


def test_max_mapped_stage_picks_highest() -> None:
    assert max_mapped_stage(["design_brand", "create_repo", "assemble_site_files"], 0) == 6


def test_max_mapped_stage_ignores_unmapped() -> None:
    assert max_mapped_stage(["consult_advisor", "something_else"], 0) is None


def test_max_mapped_stage_conditional_rule() -> None:
    assert max_mapped_stage(["validate_code"], 2) is None
    assert max_mapped_stage(["validate_code"], 4) == 5


def test_unmapped_stage_tools() -> None:
    missing = unmapped_stage_tools(["design_brand", "consult_advisor"])
    assert "design_brand" not in missing
    assert "create_repo" in missing
    assert missing == sorted(missing)
