"""Tests for logging setup."""

from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from optionbook.utils.log import LOG_LEVEL_ENV_VAR, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger("optionbook")
    level = logger.level
    handlers = list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


def test_resolve_level_prefers_argument(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "ERROR")

    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(logging.INFO) == logging.INFO


def test_resolve_level_falls_back_to_env_then_default(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "error")
    assert resolve_level() == logging.ERROR

    monkeypatch.delenv(LOG_LEVEL_ENV_VAR)
    assert resolve_level() == logging.WARNING


def test_resolve_level_rejects_unknown_names():
    with pytest.raises(ValueError):
        resolve_level("chatty")


def test_setup_logging_installs_one_rich_handler():
    setup_logging("INFO")
    logger = setup_logging("DEBUG")

    rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert logger.level == logging.DEBUG
