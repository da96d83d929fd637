"""Request timing and tracing middleware for GoalPulse."""
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("goalpulse-api.middleware")

SKIP_LOG_PATHS = {"/health", "/metrics"}


def _caller_fields(request: Request) -> dict:
    """Caller identity set by the auth dependency; absent on anonymous or rejected requests."""
    fields = {}
    for name in ("organization_id", "user_id"):
        value = getattr(request.state, name, None)
        if value is not None:
            fields[name] = value
    return fields


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an X-Request-ID (incoming header reused), times
    it, and writes one structured log line per analytics request carrying
    the caller's organization and user once authentication has resolved
    them. Server errors log at WARNING; /health and /metrics are not logged.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if request.url.path in SKIP_LOG_PATHS:
            return response

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "http_method": request.method,
                "http_path": request.url.path,
                "http_status": response.status_code,
                "request_id": request_id,
                "duration_ms": duration_ms,
                **_caller_fields(request),
            },
        )
        return response
