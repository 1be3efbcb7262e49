"""
Request logging middleware.

Pure ASGI (not BaseHTTPMiddleware) so request bodies can be observed without
consuming them. Logs method, path, status and duration for every request,
with a sanitized copy of the request body for writes.
"""

import json
import logging
import time
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)


def _sanitize_body(raw: bytes) -> Optional[str]:
    """Decode a request body, masking credentials when it is JSON."""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="ignore")
    try:
        payload = filter_sensitive_data(json.loads(text))
        text = json.dumps(payload, ensure_ascii=False)
    except json.JSONDecodeError:
        pass
    return truncate_large_data(text, max_length=2000)


class RequestLoggingMiddleware:
    """Pure ASGI middleware that logs one line per HTTP request."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        start_time = time.perf_counter()

        body_chunks = []
        status_code = 0

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path} - {e}",
                exc_info=True,
                extra={"extra_fields": {
                    "method": method,
                    "path": path,
                    "duration_ms": duration_ms,
                }},
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        request_body = _sanitize_body(b"".join(body_chunks))

        if status_code < 400:
            level = logging.INFO
        elif status_code < 500:
            level = logging.WARNING
        else:
            level = logging.ERROR

        logger.log(
            level,
            f"{method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={"extra_fields": {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "request_body": request_body,
            }},
        )
