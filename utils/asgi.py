"""ASGI utility helpers.

Header lookup and client address resolution for Starlette/ASGI scopes.
"""

from __future__ import annotations

from collections.abc import Iterable

from starlette.types import Scope

UNKNOWN_CLIENT_IP = "unknown"


def get_header(scope: Scope, name: str) -> str | None:
    """
    Retrieve a header value from an ASGI scope in a case-insensitive way.

    Returns the first matching value decoded using latin-1, or None if
    missing or undecodable.
    """
    headers: Iterable[tuple[bytes, bytes]] = scope.get("headers") or []
    name_b = name.lower().encode("latin-1")
    for k, v in headers:
        if k.lower() == name_b:
            try:
                return v.decode("latin-1")
            except (UnicodeDecodeError, LookupError):
                return None
    return None


def client_ip(scope: Scope) -> str:
    """
    Resolve the client address for a request.

    The first X-Forwarded-For entry wins; otherwise the socket peer is used.
    Deployments not behind a trusted proxy should strip X-Forwarded-For
    upstream, since clients can set it freely.
    """
    forwarded = get_header(scope, "x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    client = scope.get("client")
    if client and client[0]:
        return str(client[0])
    return UNKNOWN_CLIENT_IP
