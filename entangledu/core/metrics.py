"""Prometheus metric inventory.

Every metric the issuer and the client record is declared here; the owning
modules import and update them at the point of action.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by RequestContextMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------

MINTS = Counter(
    "mints_total",
    "Mint attempts by result",
    ["result"],  # issued|invalid|signing_failed
)

MINT_LOG_SIZE = Gauge(
    "mint_log_size",
    "Certificates currently held in the mint log",
)

# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

CREDENTIAL_REQUESTS = Counter(
    "credential_requests_total",
    "Credential requests by outcome",
    ["outcome"],  # verified|denied|offline|cached
)

LEDGER_SYNC_OVERWRITES = Counter(
    "ledger_sync_overwrites_total",
    "Ledger snapshots replaced by an external write to the shared slot",
)
