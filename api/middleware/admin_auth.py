from __future__ import annotations

import hmac
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from starlette import status
from starlette.types import Receive, Scope, Send

from utils.asgi import get_header
from utils.log_sanitizer import sanitize_for_log

from ..errors import error_response

if TYPE_CHECKING:
    from ..settings import Settings

logger = logging.getLogger(__name__)

# Local alias to avoid linter/editor false positives on starlette.types.ASGIApp
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

ADMIN_HEADER = "X-SafeQuery-Admin"
ADMIN_PATH_PREFIX = "/admin/"


class AdminAuthMiddleware:
    """
    ASGI middleware enforcing the X-SafeQuery-Admin header on /admin/ paths.

    Every other path is public. /admin/ is only left open in dev with no
    SAFEQUERY_ADMIN_TOKEN; in prod without a token every admin call is rejected.
    """

    def __init__(self, app: ASGIApp, settings: Settings):
        self.app = app
        self.settings = settings

    def _is_auth_skipped(self, scope: Scope) -> bool:
        if scope.get("type") != "http" or not self.settings.admin_auth_required:
            return True
        path: str = scope.get("path", "") or ""
        return not path.startswith(ADMIN_PATH_PREFIX)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._is_auth_skipped(scope):
            await self.app(scope, receive, send)
            return

        provided = get_header(scope, ADMIN_HEADER) or ""
        expected = self.settings.admin_token or ""

        # Constant-time comparison to avoid timing attacks
        if expected and hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "")
        trace_id = scope.get("trace_id", "")
        logger.warning(
            "Admin auth failed for %s %s, trace_id=%s",
            method,
            sanitize_for_log(path),
            trace_id,
        )
        response = error_response(
            status.HTTP_401_UNAUTHORIZED,
            "ERR_UNAUTHORIZED",
            "Missing or invalid admin header.",
            error="Unauthorized",
            endpoint=f"{method} {path}",
            request_id=trace_id if isinstance(trace_id, str) and trace_id else None,
        )
        await response(scope, receive, send)
