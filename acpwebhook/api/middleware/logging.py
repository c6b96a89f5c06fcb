"""Request logging for the webhook's HTTP surface."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from acpwebhook.core.config import settings
from acpwebhook.core.logging import get_logger, log_event

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
METRICS_PATH = "/metrics"


def _completion_level(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    return "info"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every webhook call with its outcome and duration.

    Health checks and metrics scrapes are passed through unlogged. Each logged
    request carries a request id, taken from X-Request-ID or generated,
    which is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in (settings.health_check_path, settings.readiness_check_path) or (
            path.startswith(METRICS_PATH)
        ):
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        fields = {
            "method": request.method,
            "path": path,
            "client_host": request.client.host if request.client else None,
            "request_id": request_id,
        }

        started = time.perf_counter()
        log_event(logger, "debug", "request_started", **fields)

        try:
            response = await call_next(request)
        except Exception as e:
            log_event(
                logger,
                "error",
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=time.perf_counter() - started,
                **fields,
            )
            raise

        duration = time.perf_counter() - started
        log_event(
            logger,
            _completion_level(response.status_code),
            "request_completed",
            status_code=response.status_code,
            duration_seconds=duration,
            **fields,
        )

        response.headers["X-Process-Time"] = str(duration)
        response.headers[REQUEST_ID_HEADER] = request_id

        return response
