"""Correlation ID middleware.

Tags every HTTP request (including cron calls to the escalation
endpoint) with an id that is attached to all log records it produces.
A caller-supplied ``X-Correlation-ID`` is reused when it looks sane, so
an external cron can follow one tick from its own logs into ours.
"""

import re
import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from coldchain.logging_config import correlation_id_ctx, get_logger

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"

_HEADER_KEY = CORRELATION_ID_HEADER.lower().encode()
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Polled by orchestrators every few seconds; not worth a log line each
QUIET_PATHS = frozenset({"/health/live", "/health/ready"})


def resolve_correlation_id(raw: bytes | None) -> str:
    """Incoming id if it is short and header-safe, else a fresh UUID."""
    if raw:
        value = raw.decode("latin-1").strip()
        if _VALID_ID.match(value):
            return value
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Pure ASGI middleware that binds a correlation id per request.

    The id is set in the logging context for the lifetime of the request
    and echoed back in the response headers. Pure ASGI rather than
    BaseHTTPMiddleware keeps async database sessions on the request's
    own event loop task.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(_HEADER_KEY)
        correlation_id = resolve_correlation_id(incoming)
        token = correlation_id_ctx.set(correlation_id)

        method = scope.get("method", "")
        path = scope.get("path", "")
        quiet = path in QUIET_PATHS
        start = time.perf_counter()
        status_code: int | None = None

        async def send_with_header(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status")
                headers = list(message.get("headers", []))
                headers.append((_HEADER_KEY, correlation_id.encode()))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_header)
        except Exception:
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        else:
            if not quiet:
                logger.info(
                    "Request completed",
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
        finally:
            correlation_id_ctx.reset(token)
