"""ASGI middleware for the SafeQuery service."""

from .admin_auth import AdminAuthMiddleware
from .request_id import RequestIDMiddleware

__all__ = ["AdminAuthMiddleware", "RequestIDMiddleware"]
