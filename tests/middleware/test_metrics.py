"""Prometheus metrics recorded by the request middleware and the issuer.

The default registry is process-global and counters never reset, so every
assertion reads a sample before and after the action and checks the delta.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/api/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/api/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_counter_labels_error_status(client: TestClient) -> None:
    labels = {"method": "POST", "endpoint": "/api/mint", "status_code": "400"}
    before = _get_sample("http_requests_total", labels)
    client.post("/api/mint", json={})
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/api/certificates"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/api/certificates")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_active_requests_returns_to_baseline(client: TestClient) -> None:
    before = _get_sample("http_active_requests")
    client.get("/api/health")
    assert _get_sample("http_active_requests") == before


def test_mint_counter_tracks_results(client: TestClient) -> None:
    issued_before = _get_sample("mints_total", {"result": "issued"})
    invalid_before = _get_sample("mints_total", {"result": "invalid"})

    client.post("/api/mint", json={"to": "0xABC", "lessonId": 1})
    client.post("/api/mint", json={"lessonId": 1})

    assert _get_sample("mints_total", {"result": "issued"}) - issued_before == 1
    assert _get_sample("mints_total", {"result": "invalid"}) - invalid_before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.post("/api/mint", json={"to": "0xABC", "lessonId": 1})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in resp.text
    assert "mints_total" in resp.text
    assert "mint_log_size" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before
