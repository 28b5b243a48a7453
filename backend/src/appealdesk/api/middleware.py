"""API middleware for request tracing, logging and security headers.

These are plain ASGI middlewares that only touch ``http.response.start``.
Body messages pass through untouched, so an error raised while a streamed
archive is in flight reaches the server with the response still open and the
connection is dropped instead of being closed as a complete response.
"""

import time
from uuid import uuid4

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..logging import log_api_request


class RequestIdMiddleware:
    """Middleware to add request ID for tracing."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Add request ID to request state and response headers.

        Args:
            scope: ASGI connection scope
            receive: ASGI receive channel
            send: ASGI send channel
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Check for existing request ID from client
        request_id = Headers(scope=scope).get("X-Request-ID") or str(uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)["X-Request-ID"] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)


class RequestLoggingMiddleware:
    """Log one line per request once the response headers are ready.

    For streamed archives the duration therefore covers listing and setup,
    not the transfer itself; the archive stream logs its own completion.
    """

    SKIP_PATHS = {"/health", "/health/live", "/health/ready"}

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()

        async def send_with_logging(message: Message) -> None:
            if message["type"] == "http.response.start":
                log_api_request(
                    method=scope["method"],
                    path=scope["path"],
                    status_code=message["status"],
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    request_id=scope.get("state", {}).get("request_id"),
                )
            await send(message)

        await self.app(scope, receive, send_with_logging)


class SecurityHeadersMiddleware:
    """Middleware to add security headers to responses."""

    def __init__(self, app: ASGIApp, hsts: bool = False):
        self.app = app
        self.hsts = hsts

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Add security headers to the response start message.

        Args:
            scope: ASGI connection scope
            receive: ASGI receive channel
            send: ASGI send channel
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                # Downloads must never be sniffed into something renderable
                headers["X-Content-Type-Options"] = "nosniff"
                headers["X-Frame-Options"] = "DENY"
                headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

                # HSTS (only in production with HTTPS)
                if self.hsts:
                    headers["Strict-Transport-Security"] = (
                        "max-age=31536000; includeSubDomains"
                    )
            await send(message)

        await self.app(scope, receive, send_with_headers)
