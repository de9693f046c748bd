"""Unit tests for calendar_monitor.logging_config."""

import logging
from collections.abc import Generator

import pytest
from colorlog import ColoredFormatter

from calendar_monitor.logging_config import init_logging

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.fixture
def bare_root_logger() -> Generator[logging.Logger, None, None]:
    """Root logger stripped of handlers for the duration of a test."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    yield root
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_installs_single_colored_handler(bare_root_logger: logging.Logger) -> None:
    init_logging()
    init_logging()

    assert len(bare_root_logger.handlers) == 1
    assert isinstance(bare_root_logger.handlers[0].formatter, ColoredFormatter)
    assert bare_root_logger.level == logging.INFO


def test_explicit_level(bare_root_logger: logging.Logger) -> None:
    init_logging("warning")
    assert bare_root_logger.level == logging.WARNING


def test_level_from_environment(
    bare_root_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CALENDAR_MONITOR_LOG_LEVEL", "ERROR")
    init_logging()
    assert bare_root_logger.level == logging.ERROR


def test_debug_flag_wins(bare_root_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDAR_MONITOR_DEBUG", "true")
    init_logging("ERROR")
    assert bare_root_logger.level == logging.DEBUG


def test_unknown_level_falls_back_to_info(bare_root_logger: logging.Logger) -> None:
    init_logging("chatty")
    assert bare_root_logger.level == logging.INFO


def test_http_loggers_are_quieted(bare_root_logger: logging.Logger) -> None:
    init_logging("DEBUG")
    for name in ("httpx", "httpcore", "aiohttp.access"):
        assert logging.getLogger(name).level == logging.WARNING
