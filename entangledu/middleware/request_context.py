"""Per-request id, timing, access log line and HTTP metrics.

Every request gets an id (the caller's X-Request-ID, or a fresh UUID) that
is stored in a ContextVar and stamped onto every log record emitted while
the request is handled.  The same pass records the Prometheus request
counter, duration histogram and in-flight gauge.  /metrics scrapes are not
counted.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from entangledu.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_request_id_filter() -> None:
    """Attach the filter to every root handler once.

    Handler filters also see records propagated from child loggers; a
    filter on the root logger itself would not.  Call after setup_logging.
    """
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, _RequestIdFilter) for f in handler.filters):
            handler.addFilter(_RequestIdFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)

        path = request.url.path
        instrumented = path != "/metrics"
        if instrumented:
            ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code = "500"

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            elapsed = time.monotonic() - start
            if instrumented:
                ACTIVE_REQUESTS.dec()
                REQUEST_COUNT.labels(
                    method=request.method, endpoint=path, status_code=status_code
                ).inc()
                REQUEST_DURATION.labels(method=request.method, endpoint=path).observe(
                    elapsed
                )
            request_id_var.reset(token)

        duration_ms = round(elapsed * 1000, 1)
        logger.info(
            "%s %s → %s (%.1fms)",
            request.method,
            path,
            status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
