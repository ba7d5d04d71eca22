from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from starlette.types import Message, Receive, Scope, Send

from utils.asgi import get_header

# Local alias to avoid linter/editor false positives on starlette.types.ASGIApp
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

_MAX_INBOUND_ID_LENGTH = 128


class RequestIDMiddleware:
    """
    ASGI middleware that assigns a per-request trace_id and exposes it via:
      - scope["trace_id"]
      - response header "X-Trace-Id"

    A well-formed inbound X-Request-ID is reused so callers can correlate
    their own logs; otherwise a fresh UUID4 is generated.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        trace_id = _inbound_request_id(scope) or str(uuid.uuid4())
        scope["trace_id"] = trace_id

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                headers = message.setdefault("headers", [])
                headers.append((b"x-trace-id", trace_id.encode("latin-1")))
            await send(message)

        await self.app(scope, receive, send_wrapper)


def _inbound_request_id(scope: Scope) -> str | None:
    value = get_header(scope, "x-request-id")
    if not value or len(value) > _MAX_INBOUND_ID_LENGTH:
        return None
    if not all(c.isalnum() or c in "-_." for c in value):
        return None
    return value
