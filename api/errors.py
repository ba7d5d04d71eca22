from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast
from uuid import uuid4

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from ai_safety.safe_query import QueryResult, QueryStatus

if TYPE_CHECKING:
    from fastapi import FastAPI, Request


log = logging.getLogger("api.errors")

VALIDATION_ERROR = "Validation Error"
VALIDATION_MESSAGE = "One or more validation errors occurred."

# Pipeline denial -> (HTTP status, error category)
DENIAL_STATUS: dict[QueryStatus, tuple[int, str]] = {
    QueryStatus.EMPTY: (status.HTTP_400_BAD_REQUEST, "Bad Request"),
    QueryStatus.TOO_LONG: (status.HTTP_400_BAD_REQUEST, "Bad Request"),
    QueryStatus.HARMFUL: (status.HTTP_403_FORBIDDEN, "Forbidden"),
    QueryStatus.INJECTION: (status.HTTP_403_FORBIDDEN, "Forbidden"),
    QueryStatus.RATE_LIMITED: (status.HTTP_429_TOO_MANY_REQUESTS, "Too Many Requests"),
    QueryStatus.BANNED: (status.HTTP_429_TOO_MANY_REQUESTS, "Too Many Requests"),
    QueryStatus.UPSTREAM_ERROR: (status.HTTP_502_BAD_GATEWAY, "Bad Gateway"),
    QueryStatus.INTERNAL_ERROR: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Error"),
}


class ErrorResponse(BaseModel):
    # Short, human category (e.g. "Forbidden", "Validation Error", "Not Found")
    error: str = Field(...)
    # HTTP status code
    status: int = Field(...)
    # Machine-usable code (e.g. "ERR_RATE_LIMITED", "ERR_VALIDATION")
    code: str = Field(...)
    # Human-readable message
    message: str = Field(...)
    details: Any | None = Field(default=None)
    requestId: str | None = Field(default=None)
    # "METHOD PATH"
    endpoint: str = Field(...)
    # RFC3339 timestamp
    timestamp: str = Field(...)


class SafetyDenied(Exception):
    """Raised by routes when the pipeline denies a query."""

    def __init__(self, result: QueryResult) -> None:
        super().__init__(result.error or result.status.value)
        self.result = result


def error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    error: str,
    endpoint: str,
    details: Any | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Build the canonical error envelope."""
    body = ErrorResponse(
        error=error,
        status=status_code,
        code=code,
        message=message,
        details=details,
        requestId=request_id or str(uuid4()),
        endpoint=endpoint,
        timestamp=datetime.now(UTC).isoformat(),
    )
    return JSONResponse(content=body.model_dump(exclude_none=True), status_code=status_code)


def _trace_id_from_request(request: Request) -> str:
    # Prefer the middleware-assigned trace_id in scope
    trace_id = request.scope.get("trace_id")
    if isinstance(trace_id, str) and trace_id:
        return trace_id
    header_rid = request.headers.get("X-Request-ID") or request.headers.get("X-Trace-Id")
    return header_rid if isinstance(header_rid, str) else ""


def _json_error_response(
    *,
    request: Request,
    status_code: int,
    code: str,
    error: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    return error_response(
        status_code,
        code,
        message,
        error=error,
        endpoint=f"{request.method} {request.url.path}",
        details=details,
        request_id=_trace_id_from_request(request) or None,
    )


def _flatten_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    flattened = []
    for e in cast("Iterable[Mapping[str, Any]]", exc.errors()):
        loc = e.get("loc", [])
        flattened.append(
            {
                "loc": [loc] if isinstance(loc, str) else [str(x) for x in loc],
                "msg": str(e.get("msg", "")),
                "type": str(e.get("type", "")),
            }
        )
    return flattened


def register_exception_handlers(app: FastAPI) -> None:
    """Register API exception handlers producing the canonical error envelope."""
    app.add_exception_handler(SafetyDenied, safety_denied_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def safety_denied_handler(request: Request, exc: Exception) -> JSONResponse:
    result = cast("SafetyDenied", exc).result
    status_code, err = DENIAL_STATUS[result.status]

    details: dict[str, Any] = {"reason": result.status.value}
    if result.quota is not None:
        details["quota"] = result.quota.to_dict()
    if result.ban_expires_at is not None:
        details["ban_expires_at"] = result.ban_expires_at.isoformat()

    log.info(
        "Query denied",
        extra={
            "trace_id": _trace_id_from_request(request),
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
        },
    )

    return _json_error_response(
        request=request,
        status_code=status_code,
        code=f"ERR_{result.status.value.upper()}",
        error=err,
        message=result.error or err,
        details=details,
    )


def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    exc_obj = cast("StarletteHTTPException", exc)
    status_code = exc_obj.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR

    # Map common statuses to canonical error/code
    if status_code == status.HTTP_401_UNAUTHORIZED:
        err, code = "Unauthorized", "ERR_UNAUTHORIZED"
    elif status_code == status.HTTP_404_NOT_FOUND:
        err, code = "Not Found", "ERR_NOT_FOUND"
    elif status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        err, code = "Method Not Allowed", "ERR_METHOD_NOT_ALLOWED"
    else:
        err = "HTTP Error" if status_code < 500 else "Internal Error"
        code = "ERR_HTTP" if status_code < 500 else "ERR_INTERNAL"

    log.warning(
        "HTTPException",
        extra={
            "trace_id": _trace_id_from_request(request),
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
        },
    )

    return _json_error_response(
        request=request,
        status_code=status_code,
        code=code,
        error=err,
        message=str(exc_obj.detail),
    )


def request_validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = 422
    errors = _flatten_validation_errors(cast("RequestValidationError", exc))

    log.warning(
        "RequestValidationError",
        extra={
            "trace_id": _trace_id_from_request(request),
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
        },
    )

    return _json_error_response(
        request=request,
        status_code=status_code,
        code="ERR_VALIDATION",
        error=VALIDATION_ERROR,
        message=VALIDATION_MESSAGE,
        details=errors,
    )


def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    log.exception(
        "UnhandledException",
        extra={
            "trace_id": _trace_id_from_request(request),
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
        },
    )

    return _json_error_response(
        request=request,
        status_code=status_code,
        code="ERR_INTERNAL",
        error="Internal Error",
        message="An unexpected error occurred.",
    )
