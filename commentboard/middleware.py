"""
Request pipeline.

Every class here is pure ASGI middleware (no ``BaseHTTPMiddleware``) so
that response headers can be added on ``http.response.start`` without an
extra task per request.  ``commentboard.main.create_app`` installs them in
this order, outermost first:

    SecurityHeadersMiddleware -> CORSMiddleware -> RateLimitMiddleware
    -> BodySizeLimitMiddleware -> RequestLoggingMiddleware
    -> InputTrimMiddleware -> ErrorFallbackMiddleware -> routes
"""
import logging
import time
import traceback
from urllib.parse import parse_qsl, quote, urlencode

from starlette.datastructures import Headers, MutableHeaders
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from commentboard.ratelimit import RateLimiter

access_logger = logging.getLogger("commentboard.access")
logger = logging.getLogger(__name__)

GENERIC_ERROR = "An internal error occurred"

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "style-src 'self' 'unsafe-inline'",
        "script-src 'self'",
        "img-src 'self' data: https:",
    ]
)

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def _client_address(scope: Scope) -> str:
    client = scope.get("client")
    return client[0] if client else "unknown"


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------

class SecurityHeadersMiddleware:
    """Add the hardening headers to every HTTP response, errors included."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in SECURITY_HEADERS.items():
                    if name not in headers:
                        headers[name] = value
            await send(message)

        await self.app(scope, receive, send_wrapper)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class RateLimitMiddleware:
    """
    Reject a client with 429 once it exceeds ``limiter.max_requests`` in the
    current window.  Every response carries the ``RateLimit-*`` headers.
    """

    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        result = await self.limiter.hit(_client_address(scope))
        rate_headers = {
            "RateLimit-Limit": str(result.limit),
            "RateLimit-Remaining": str(result.remaining),
            "RateLimit-Reset": str(result.reset_after_seconds),
        }

        if not result.allowed:
            logger.warning("Rate limit exceeded for %s", _client_address(scope))
            response = JSONResponse(
                {"error": "Too many requests, please try again later"},
                status_code=429,
                headers={**rate_headers, "Retry-After": str(result.reset_after_seconds)},
            )
            await response(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in rate_headers.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_wrapper)


# ---------------------------------------------------------------------------
# Body size
# ---------------------------------------------------------------------------

class BodyTooLarge(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=413, detail="Request body too large")


class BodySizeLimitMiddleware:
    """
    Refuse bodies larger than *max_bytes*.

    A declared ``Content-Length`` over the limit is rejected before the app
    runs.  Chunked bodies are counted as they are received; crossing the
    limit raises ``BodyTooLarge`` out of ``receive()``, which the HTTP
    exception handler turns into a 413 before any parsing happens.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                declared = None
            if declared is not None and declared > self.max_bytes:
                await self._reject(scope, receive, send)
                return

        received = 0
        response_started = False

        async def receive_wrapper() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise BodyTooLarge()
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except BodyTooLarge:
            if response_started:
                raise
            await self._reject(scope, receive, send)

    @staticmethod
    async def _reject(scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse({"error": "Request body too large"}, status_code=413)
        await response(scope, receive, send)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class RequestLoggingMiddleware:
    """Log one access line per request: method, path, client, status, duration."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            access_logger.info(
                "%s %s - IP: %s -> %d (%.2f ms)",
                scope["method"],
                scope["path"],
                _client_address(scope),
                status_code,
                duration_ms,
            )


# ---------------------------------------------------------------------------
# Input trimming
# ---------------------------------------------------------------------------

def _trim_query_string(raw: bytes) -> bytes:
    if not raw:
        return raw
    pairs = parse_qsl(raw.decode("latin-1"), keep_blank_values=True)
    return urlencode([(key, value.strip()) for key, value in pairs]).encode("latin-1")


def _trim_path(path: str) -> str:
    return "/".join(segment.strip() for segment in path.split("/"))


class InputTrimMiddleware:
    """
    Strip surrounding whitespace from query-string values and path segments
    before routing, so ``/user/%205%20`` resolves like ``/user/5``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        scope["query_string"] = _trim_query_string(scope.get("query_string", b""))
        trimmed = _trim_path(scope["path"])
        if trimmed != scope["path"]:
            scope["path"] = trimmed
            scope["raw_path"] = quote(trimmed).encode("ascii")
        await self.app(scope, receive, send)


# ---------------------------------------------------------------------------
# Error fallback
# ---------------------------------------------------------------------------

class ErrorFallbackMiddleware:
    """
    Catch anything the routes did not handle, log it and answer 500.

    Outside development mode the body is a generic message; in development
    it carries the exception message and traceback.
    """

    def __init__(self, app: ASGIApp, debug: bool = False) -> None:
        self.app = app
        self.debug = debug

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except BodyTooLarge:
            raise
        except Exception as exc:
            logger.exception("Unhandled error on %s %s", scope["method"], scope["path"])
            if response_started:
                raise
            if self.debug:
                body = {"error": str(exc) or type(exc).__name__, "stack": traceback.format_exc()}
            else:
                body = {"error": GENERIC_ERROR}
            await JSONResponse(body, status_code=500)(scope, receive, send)
