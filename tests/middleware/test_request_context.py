from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from entangledu.middleware.request_context import (
    _RequestIdFilter,
    install_request_id_filter,
    request_id_var,
)


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/api/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/api/health", headers={"X-Request-ID": "mint-trace-42"})
    assert resp.headers.get("x-request-id") == "mint-trace-42"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.post("/api/mint", json={})
    assert resp.status_code == 400
    assert resp.headers.get("x-request-id") is not None


def _record() -> logging.LogRecord:
    return logging.LogRecord("entangledu.x", logging.INFO, "x.py", 1, "msg", (), None)


def test_filter_stamps_current_request_id() -> None:
    token = request_id_var.set("trace-mint")
    try:
        record = _record()
        assert _RequestIdFilter().filter(record) is True
    finally:
        request_id_var.reset(token)
    assert record.request_id == "trace-mint"  # type: ignore[attr-defined]


def test_filter_keeps_explicit_request_id() -> None:
    record = _record()
    record.request_id = "from-extra"  # type: ignore[attr-defined]
    _RequestIdFilter().filter(record)
    assert record.request_id == "from-extra"  # type: ignore[attr-defined]


def test_access_line_logged(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="entangledu.middleware.request_context"):
        client.get("/api/health")
    access = [r for r in caplog.records if getattr(r, "path", None) == "/api/health"]
    assert access
    assert access[0].status_code == 200  # type: ignore[attr-defined]


def test_request_id_var_reset_after_request(client: TestClient) -> None:
    client.get("/api/health", headers={"X-Request-ID": "leak-check"})
    assert request_id_var.get() == "-"


def test_install_request_id_filter_is_idempotent() -> None:
    handler = logging.NullHandler()
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        install_request_id_filter()
        install_request_id_filter()
        assert sum(isinstance(f, _RequestIdFilter) for f in handler.filters) == 1
    finally:
        root.removeHandler(handler)
