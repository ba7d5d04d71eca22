"""
Error reporting for SafeQuery.

Builds structured error reports with a deduplication fingerprint, logs them,
and forwards them to Sentry when a DSN is configured through
``SENTRY_DSN_FILE`` (file-based secret) or ``SENTRY_DSN``.
"""

from __future__ import annotations

import base64
import logging
import os
import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import sentry_sdk

from .log_sanitizer import sanitize_for_log, sanitize_mapping

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Severity -> (logging level, Sentry level)
_LEVELS: dict[ErrorSeverity, tuple[int, str]] = {
    ErrorSeverity.LOW: (logging.WARNING, "warning"),
    ErrorSeverity.MEDIUM: (logging.ERROR, "error"),
    ErrorSeverity.HIGH: (logging.ERROR, "error"),
    ErrorSeverity.CRITICAL: (logging.CRITICAL, "fatal"),
}


@dataclass
class ErrorReport:
    """A single reported error."""

    message: str
    error_type: str
    severity: ErrorSeverity
    fingerprint: str
    context: dict[str, Any] = field(default_factory=dict)
    stack: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "error_type": self.error_type,
            "severity": self.severity.value,
            "fingerprint": self.fingerprint,
            "context": dict(self.context),
            "stack": self.stack,
            "timestamp": self.timestamp,
        }


def _get_sentry_dsn() -> str | None:
    """Get Sentry DSN from file or environment variable."""
    # Try file-based secret first (Docker/K8s)
    dsn_file = os.getenv("SENTRY_DSN_FILE")
    if dsn_file:
        try:
            with open(dsn_file, encoding="utf-8") as f:
                dsn = f.read().strip()
            if dsn:
                return dsn
        except OSError as e:
            logger.warning("Could not read SENTRY_DSN_FILE: %s", sanitize_for_log(e))

    # Fallback to environment variable
    return os.getenv("SENTRY_DSN") or None


def generate_fingerprint(error: BaseException, context: dict[str, Any] | None = None) -> str:
    """Build a 16 character fingerprint for deduplicating reports.

    The fingerprint covers the exception type and message plus the
    ``component`` and ``action`` context entries, when present.
    """
    context = context or {}
    components = [
        type(error).__name__,
        str(error),
        context.get("component"),
        context.get("action"),
    ]
    joined = "|".join(str(c) for c in components if c)
    return base64.b64encode(joined.encode("utf-8")).decode("ascii")[:16]


class ErrorReporter:
    """Reports errors to the log and, when configured, to Sentry."""

    def __init__(self, dsn: str | None = None, *, environment: str | None = None):
        """Initialize the reporter.

        Args:
            dsn: Sentry DSN; read from the environment when omitted
            environment: Deployment environment name passed to Sentry
        """
        self.dsn = dsn if dsn is not None else _get_sentry_dsn()
        self.environment = environment or os.getenv("SAFEQUERY_ENV", "dev")
        self.reports_sent = 0

        if self.dsn:
            sentry_sdk.init(
                dsn=self.dsn,
                environment=self.environment,
                # Prompts and IP addresses stay out of Sentry events
                send_default_pii=False,
            )

    @property
    def enabled(self) -> bool:
        return bool(self.dsn)

    def report_error(
        self,
        error: BaseException,
        context: dict[str, Any] | None = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    ) -> ErrorReport:
        """Report an error.

        Args:
            error: The exception to report
            context: Extra context such as ``component``, ``action``, ``user_id``
            severity: Severity of the error

        Returns:
            The ErrorReport that was built
        """
        safe_context = sanitize_mapping(context)
        report = ErrorReport(
            message=str(error),
            error_type=type(error).__name__,
            severity=severity,
            fingerprint=generate_fingerprint(error, context),
            context=safe_context,
            stack="".join(traceback.format_exception(error)) if error.__traceback__ else None,
        )

        log_level, sentry_level = _LEVELS[severity]
        logger.log(
            log_level,
            "Error report [%s] %s: %s",
            severity.value,
            report.error_type,
            sanitize_for_log(report.message),
            extra={"fingerprint": report.fingerprint, "error_context": safe_context},
        )

        if self.enabled:
            self._send_to_sentry(error, report, sentry_level)
        return report

    def _send_to_sentry(self, error: BaseException, report: ErrorReport, level: str) -> None:
        try:
            with sentry_sdk.new_scope() as scope:
                scope.set_level(level)
                scope.set_tag("severity", report.severity.value)
                scope.set_context("safequery", report.context)
                scope.fingerprint = [report.fingerprint]
                sentry_sdk.capture_exception(error)
            self.reports_sent += 1
        except Exception:
            # Reporting must never take the caller down
            logger.exception("Failed to send error report %s to Sentry", report.fingerprint)

    def report_warning(self, message: str, context: dict[str, Any] | None = None) -> ErrorReport:
        """Report a handled condition at low severity."""
        return self.report_error(UserWarning(message), context, ErrorSeverity.LOW)

    def report_critical(
        self, error: BaseException, context: dict[str, Any] | None = None
    ) -> ErrorReport:
        """Report an error that requires immediate attention."""
        return self.report_error(error, context, ErrorSeverity.CRITICAL)

    def check_configuration(self) -> bool:
        """Send a low-severity test report and tell whether reporting works."""
        try:
            self.report_error(
                RuntimeError("Test error report"),
                {"component": "ErrorReporter", "action": "test"},
                ErrorSeverity.LOW,
            )
        except Exception:
            logger.exception("Error reporting test failed")
            return False
        return True


# Global reporter instance
_global_reporter: ErrorReporter | None = None


def get_error_reporter() -> ErrorReporter:
    """Get or create the shared error reporter.

    Returns:
        ErrorReporter instance
    """
    global _global_reporter
    if _global_reporter is None:
        _global_reporter = ErrorReporter()
    return _global_reporter
