import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from brainjourney.core.logging import LOGGER_NAME, request_id_ctx_var

_LATENCY_BUCKETS = ((10, "<10ms"), (100, "10-100ms"), (1000, "100-1000ms"))


def latency_bucket(duration_ms: float) -> str:
    for bound, label in _LATENCY_BUCKETS:
        if duration_ms < bound:
            return label
    return ">=1000ms"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request_id for the duration of a request and echo it back.

    An incoming ``x-request-id`` header is reused so callers can correlate.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers[self.header_name] = rid
        logging.getLogger(LOGGER_NAME).info(
            "request.complete",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_bucket": latency_bucket((time.perf_counter() - started) * 1000),
            },
        )
        return response
