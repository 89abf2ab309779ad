"""Tests for utils/logging.py."""
from __future__ import annotations

import logging

import structlog

from landing_builder.utils.logging import bind_turn_context, configure_logging


def test_configure_logging_json_does_not_raise() -> None:
    configure_logging("INFO", json=True)


def test_configure_logging_console_does_not_raise() -> None:
    configure_logging("DEBUG", json=False)


def test_configure_logging_sets_root_level() -> None:
    configure_logging("WARNING", json=True)
    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_quiets_httpx() -> None:
    configure_logging("DEBUG", json=True)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configure_logging_unknown_level_falls_back_to_info() -> None:
    configure_logging("NOPE", json=True)
    assert logging.getLogger().level == logging.INFO


def test_bind_turn_context_replaces_previous() -> None:
    bind_turn_context("p-1", "user")
    bind_turn_context("p-2", "continue")
    ctx = structlog.contextvars.get_contextvars()
    assert ctx == {"project_id": "p-2", "turn_type": "continue"}
    structlog.contextvars.clear_contextvars()
