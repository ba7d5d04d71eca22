from __future__ import annotations

import logging
import os
import re
import sys
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any

from pythonjsonlogger.json import JsonFormatter
from starlette.types import Message, Receive, Scope, Send

from utils.logger import CONFIGURED_MARKER

if TYPE_CHECKING:
    from .settings import Settings

# Local alias to avoid linter/editor false positives on starlette.types.ASGIApp
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


@dataclass(frozen=True)
class RedactionConfig:
    """Configuration constants for redaction operations."""

    redacted_placeholder: str = "***"
    admin_header: str = "x-safequery-admin"
    sensitive_field_names: frozenset[str] = field(
        default_factory=lambda: frozenset(["headers", "extra", "data", "error_context"])
    )
    structured_log_fields: tuple[str, ...] = field(
        default_factory=lambda: (
            "status",
            "route",
            "path",
            "method",
            "trace_id",
            "duration_ms",
            "fingerprint",
        )
    )


class RedactionService:
    """Redacts the admin token and admin header values from log data."""

    def __init__(self, admin_token: str | None, config: RedactionConfig) -> None:
        self.config = config
        self.secrets = [s for s in [admin_token] if s]
        # Matches `x-safequery-admin: value` and `"x-safequery-admin": "value"`
        self._header_pattern = re.compile(
            rf'("?{re.escape(config.admin_header)}"?\s*:\s*"?)([^",\s}}]+)',
            re.IGNORECASE,
        )

    def redact_text(self, text: str) -> str:
        """Redact sensitive information from text strings.

        Args:
            text: The text to redact

        Returns:
            Text with sensitive information redacted
        """
        redacted = text
        for secret in self.secrets:
            redacted = redacted.replace(secret, self.config.redacted_placeholder)
        return self._header_pattern.sub(
            lambda m: m.group(1) + self.config.redacted_placeholder, redacted
        )

    def redact_value(self, value: Any) -> Any:
        """Recursively redact strings inside dicts, lists and tuples."""
        if isinstance(value, str):
            return self.redact_text(value)
        if isinstance(value, dict):
            return {
                k: (
                    self.config.redacted_placeholder
                    if isinstance(k, str) and k.lower() == self.config.admin_header
                    else self.redact_value(v)
                )
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [self.redact_value(v) for v in value]
        if isinstance(value, tuple):
            return tuple(self.redact_value(v) for v in value)
        return value


class RedactionFilter(logging.Filter):
    """Logging filter that redacts sensitive values from log records."""

    def __init__(self, admin_token: str | None) -> None:
        super().__init__()
        self.config = RedactionConfig()
        self.redaction_service = RedactionService(admin_token, self.config)

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive information from a log record.

        Returns:
            Always True (record is processed but not filtered out)
        """
        service = self.redaction_service
        if isinstance(record.msg, str):
            record.msg = service.redact_text(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: service.redact_value(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(service.redact_value(a) for a in record.args)
        for key in self.config.sensitive_field_names:
            if key in record.__dict__:
                record.__dict__[key] = service.redact_value(record.__dict__[key])
        return True


class ISOFormatter(JsonFormatter):
    """JSON formatter that outputs ISO8601 timestamp and selected fields."""

    def __init__(self, config: RedactionConfig) -> None:
        super().__init__(fmt="%(message)s")
        self.config = config

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add timestamp, level, logger name and structured request fields."""
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("ts", time.strftime("%Y-%m-%dT%H:%M:%S%z"))
        log_record["level"] = record.levelname.lower()
        log_record["logger"] = record.name

        for field_name in self.config.structured_log_fields:
            value = message_dict.get(field_name) or getattr(record, field_name, None)
            if value is not None:
                log_record[field_name] = value
        # Mirror path to route for stability
        if "route" not in log_record and "path" in log_record:
            log_record["route"] = log_record["path"]


def setup_logging(settings: Settings) -> None:
    """Configure structured JSON logging with redaction.

    Sets up:
    - StreamHandler (stderr)
    - RotatingFileHandler (<log_dir>/api.log)
    - Redaction of the admin token

    Args:
        settings: Application settings
    """
    os.makedirs(settings.log_dir, exist_ok=True)
    logfile = os.path.join(settings.log_dir, "api.log")
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace handlers from a previous setup to avoid duplication
    for handler in [h for h in root_logger.handlers if getattr(h, "_safequery", False)]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = ISOFormatter(RedactionConfig())
    redactor = RedactionFilter(settings.admin_token)

    stream_handler = logging.StreamHandler(stream=sys.stderr)
    file_handler = RotatingFileHandler(
        logfile,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    for handler in (stream_handler, file_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        handler._safequery = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)

    setattr(root_logger, CONFIGURED_MARKER, True)


class RequestResponseLoggerMiddleware:
    """ASGI middleware that logs request/response information."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app
        self.log = logging.getLogger("api.requests")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        start_ns = time.perf_counter_ns()
        status_holder: dict[str, int | None] = {"status": None}

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                status_holder["status"] = int(message.get("status", 0))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000.0
            trace_obj = scope.get("trace_id", "")
            self.log.info(
                "request",
                extra={
                    "trace_id": trace_obj if isinstance(trace_obj, str) else "",
                    "path": scope.get("path", ""),
                    "method": scope.get("method", ""),
                    "status": status_holder["status"] or 0,
                    "duration_ms": round(duration_ms, 3),
                },
            )
