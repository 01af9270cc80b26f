from __future__ import annotations

import logging

import pytest

from entangledu.core.logging import _ContainerFormatter, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(level: int, msg: str, *, pathname: str = "test.py", lineno: int = 1):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname=pathname,
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_replaces_handlers() -> None:
    setup_logging("info")
    setup_logging("info")
    assert len(logging.getLogger().handlers) == 1


def test_setup_logging_quiets_http_libraries_at_debug() -> None:
    setup_logging("debug")
    for name in ("uvicorn", "httpx", "httpcore"):
        assert logging.getLogger(name).level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO, "minted"))
    assert "minted" in output
    assert "[test.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(
        _record(logging.WARNING, "issuer unreachable", pathname="client.py", lineno=42)
    )
    assert "issuer unreachable" in output
    assert "[client.py:42]" in output


def test_formatter_puts_millis_before_offset() -> None:
    record = _record(logging.INFO, "tick")
    record.msecs = 7
    stamp = _ContainerFormatter().formatTime(record, "%Y-%m-%dT%H:%M:%S%z")
    assert ".007" in stamp
    assert stamp[-5] in "+-"
