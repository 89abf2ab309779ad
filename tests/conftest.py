"""Shared test fixtures."""
from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import pytest

from landing_builder.agent.service import BuildService
from landing_builder.agent.tools import ToolContext, ToolDefinition, ToolOutput
from landing_builder.core.config import BuilderConfig
from landing_builder.core.constants import BuildMode, StepStatus
from landing_builder.core.types import BuildSession, Project
from landing_builder.build.session import create_session
from landing_builder.llm.mock import MockModelClient
from landing_builder.store.memory import InMemoryProjectCatalog, InMemorySessionStore
from landing_builder.store.sqlite import SQLiteSessionStore

PROJECT_ID = "proj-1"


def make_tool(name: str, content: str = "ok", artifacts: dict[str, Any] | None = None) -> ToolDefinition:
    """A build tool that records nothing and returns *content*."""

    async def handler(input: dict[str, Any], context: ToolContext) -> ToolOutput:
        return ToolOutput(content=content, artifacts=artifacts or {})

    return ToolDefinition(name=name, description=f"{name} tool", handler=handler)


def make_session(step: int = 0, mode: BuildMode = BuildMode.INTERACTIVE, substep: int = 0) -> BuildSession:
    """A session positioned at *step* with every earlier stage complete."""
    session = create_session(PROJECT_ID, mode)
    for i, s in enumerate(session.steps):
        if i < step:
            s.status = StepStatus.COMPLETE
        elif i == step:
            s.status = StepStatus.ACTIVE
        else:
            s.status = StepStatus.PENDING
    session.current_step = step
    session.current_substep = substep
    return session


@pytest.fixture
def project() -> Project:
    return Project(
        id=PROJECT_ID,
        name="Shelfie",
        description="Inventory tracking for indie bookstores",
        target_user="Independent bookstore owners",
        problem_solved="Knowing what to reorder without a spreadsheet",
    )


@pytest.fixture
def config() -> BuilderConfig:
    return BuilderConfig(anthropic_api_key="test-key", tool_timeout_seconds=2.0)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def catalog(project: Project) -> InMemoryProjectCatalog:
    return InMemoryProjectCatalog([project])


@pytest.fixture
def model() -> MockModelClient:
    return MockModelClient()


@pytest.fixture
def build_tools() -> list[ToolDefinition]:
    return [
        make_tool("design_brand"),
        make_tool("assemble_site_files"),
        make_tool("evaluate_brand"),
        make_tool("validate_code"),
        make_tool("create_repo", artifacts={"repoUrl": "https://github.com/acme/shelfie"}),
        make_tool("push_files"),
        make_tool("create_vercel_project"),
        make_tool("trigger_deploy"),
        make_tool("check_deploy_status", artifacts={"siteUrl": "https://shelfie.vercel.app"}),
        make_tool("verify_site"),
        make_tool("finalize_site"),
    ]


@pytest.fixture
def service(
    model: MockModelClient,
    store: InMemorySessionStore,
    catalog: InMemoryProjectCatalog,
    config: BuilderConfig,
    build_tools: list[ToolDefinition],
) -> BuildService:
    return BuildService(
        model=model,
        store=store,
        catalog=catalog,
        config=config,
        tools=lambda project: build_tools,
    )


@pytest.fixture
async def sqlite_store() -> AsyncGenerator[SQLiteSessionStore, None]:
    store = SQLiteSessionStore(":memory:")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def make_session_at():
    return make_session


@pytest.fixture
def make_build_tool():
    return make_tool
