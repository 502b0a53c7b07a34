"""Request ID middleware for HTTP request tracing.

Ensures every HTTP response includes an ``X-Request-ID`` header (either echoed
from the client or auto-generated) and binds the ID, plus the calling actor
when the gateway supplied one, into structlog contextvars so all log entries
for the request share the same fields.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "campaign-settlement"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every HTTP request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process the request, binding request context to structlog contextvars.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response with ``X-Request-ID`` header set.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id, "service": SERVICE_NAME}
        actor_id = request.headers.get("X-Actor-Id")
        if actor_id:
            context["actor_id"] = actor_id
        structlog.contextvars.bind_contextvars(**context)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
