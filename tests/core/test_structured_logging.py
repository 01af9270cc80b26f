"""JSON log output: one parseable object per record, with context fields."""

from __future__ import annotations

import json
import logging
import sys

from entangledu.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str, *args: object, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="entangledu.services.issuer_service",
        level=level,
        pathname="issuer_service.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Minted %s", "cert-1")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "entangledu.services.issuer_service"
    assert parsed["message"] == "Minted cert-1"
    assert "timestamp" in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record("POST /api/mint")
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.method = "POST"  # type: ignore[attr-defined]
    record.path = "/api/mint"  # type: ignore[attr-defined]
    record.status_code = 200  # type: ignore[attr-defined]
    record.duration_ms = 3.5  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "POST"
    assert parsed["path"] == "/api/mint"
    assert parsed["status_code"] == 200
    assert parsed["duration_ms"] == 3.5


def test_json_formatter_includes_credential_fields() -> None:
    record = _record("Mint denied")
    record.lesson_id = 2  # type: ignore[attr-defined]
    record.outcome = "denied"  # type: ignore[attr-defined]
    record.recipient = "0xABC"  # type: ignore[attr-defined]
    record.mint_count = 4  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["lesson_id"] == 2
    assert parsed["outcome"] == "denied"
    assert parsed["recipient"] == "0xABC"
    assert parsed["mint_count"] == 4


def test_json_formatter_omits_absent_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("plain")))
    assert "lesson_id" not in parsed
    assert "request_id" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("digest must be 32 bytes")
    except ValueError:
        record = _record("Signing failed", level=logging.ERROR)
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    parsed = json.loads(output)
    assert "ValueError: digest must be 32 bytes" in parsed["exception"]


def test_container_formatter_is_plain_text() -> None:
    output = _ContainerFormatter().format(_record("issuer started"))
    assert "INFO" in output
    assert "issuer started" in output
    assert not output.lstrip().startswith("{")
