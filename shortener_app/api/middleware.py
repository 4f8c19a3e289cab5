from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import logging
import time
import uuid

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its response status, redirect target and duration."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        start_time = time.perf_counter()

        logger.info(
            "Incoming request %s %s",
            request.method,
            request.url.path,
            extra={
                "request_id": request_id,
            },
        )

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        location = response.headers.get("location")
        if location:
            logger.info(
                "Redirect sent %s %s -> %s (%d, %sms)",
                request.method, request.url.path, location, response.status_code, duration_ms,
                extra={"request_id": request_id},
            )
        else:
            logger.info(
                "Response sent %s %s (%d, %sms)",
                request.method, request.url.path, response.status_code, duration_ms,
                extra={"request_id": request_id},
            )

        response.headers["X-Request-ID"] = request_id
        return response
