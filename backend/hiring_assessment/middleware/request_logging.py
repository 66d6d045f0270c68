"""
Request/response logging middleware with request-id correlation.
"""
import logging
import re
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable, Optional

from hiring_assessment.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

_SESSION_PATH = re.compile(r"/sessions/(?P<session_id>[A-Z0-9]+)")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request and response with method, path, status and duration.

    The ``X-Request-ID`` header is honoured when present, generated
    otherwise, echoed on the response and attached to every log entry written
    while the request is handled. Requests addressed to a session also carry
    its ID so all activity on one session can be pulled from the logs.
    """

    @staticmethod
    def _session_id(path: str) -> Optional[str]:
        match = _SESSION_PATH.search(path)
        return match.group("session_id") if match else None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.time()
        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"

        extra_fields = {
            "method": method,
            "path": path,
            "client_host": client_host,
        }
        session_id = self._session_id(path)
        if session_id:
            extra_fields["session_id"] = session_id

        logger.info("Incoming request", extra=extra_fields)

        try:
            response = await call_next(request)

            duration_ms = round((time.time() - start_time) * 1000, 2)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id

            extra_fields.update(status_code=status_code, duration_ms=duration_ms)
            if status_code >= 500:
                logger.error("Server error response", extra=extra_fields)
            elif status_code >= 400:
                logger.warning("Client error response", extra=extra_fields)
            else:
                logger.info("Request completed", extra=extra_fields)

            return response
        finally:
            request_id_context.reset(token)
