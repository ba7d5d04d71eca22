"""SafeQuery pipeline.

Runs a prompt through validation, harmful-content and injection screening,
per-user and per-IP rate limiting, the model responder and output
sanitization, in that order. Every denial is returned as a
:class:`QueryResult`; nothing in the request path raises to the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import threading
from typing import Any, Protocol

from utils.error_reporter import ErrorReporter, ErrorSeverity, get_error_reporter
from utils.log_sanitizer import sanitize_for_log
from utils.logger import Logger

from .config import SafetyConfig
from .stages.harmful_content import detect_prompt_injection, find_harmful_pattern
from .stages.ip_rate_limiter import IPLimiterStore, IPRateLimiter
from .stages.output_sanitizer import SanitizerOptions, sanitize_output
from .stages.rate_limiter import QuotaInfo, UserRateLimiter

# Roughly four characters per token
CHARS_PER_TOKEN = 4
RESPONSE_ALLOWED_TAGS: tuple[str, ...] = ("p", "br", "ul", "ol", "li", "code", "pre")

MSG_EMPTY = "Please enter a prompt"
MSG_TOO_LONG = "Prompt too long. Maximum length is {limit} characters."
MSG_HARMFUL = "Your prompt contains potentially harmful content that is not allowed"
MSG_INJECTION = "Your input contains patterns that are not allowed"
MSG_RATE_LIMITED = "Rate limit exceeded. Please try again later."
MSG_BANNED = "Access temporarily restricted due to excessive usage. Please try again later."
MSG_UPSTREAM = "Failed to get response from AI service. Please try again."
MSG_INTERNAL = "An unexpected error occurred. Please try again."


class QueryStatus(str, Enum):
    """Outcome of a pipeline run."""

    OK = "ok"
    EMPTY = "empty"
    TOO_LONG = "too_long"
    HARMFUL = "harmful"
    INJECTION = "injection"
    RATE_LIMITED = "rate_limited"
    BANNED = "banned"
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"


class Responder(Protocol):
    """Produces the raw model response for an admitted prompt."""

    def __call__(self, prompt: str, model_id: str, max_tokens: int) -> str: ...


class UpstreamError(Exception):
    """Raised by a responder when the model service fails."""


@dataclass(frozen=True)
class QueryResult:
    """Result of :meth:`SafeQueryPipeline.run`."""

    allowed: bool
    status: QueryStatus
    response: str | None = None
    error: str | None = None
    quota: QuotaInfo | None = None
    ban_expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "status": self.status.value,
            "response": self.response,
            "error": self.error,
            "quota": self.quota.to_dict() if self.quota else None,
            "ban_expires_at": self.ban_expires_at.isoformat() if self.ban_expires_at else None,
        }


def simulate_response(prompt: str, model_id: str = "default", max_tokens: int = 1000) -> str:
    """Stand-in responder used when no model service is wired up."""
    return (
        f'Response to: "{prompt}"\n'
        "This is a simulated AI response for demonstration purposes."
    )


class SafeQueryPipeline:
    """Guards calls to an AI model behind validation, filtering and limits.

    Attributes:
        feedback_hook: Optional callable receiving the user-facing message
            of every denial (e.g. a status bar or chat notice).
    """

    def __init__(
        self,
        config: SafetyConfig | None = None,
        *,
        responder: Responder | None = None,
        user_limiter: UserRateLimiter | None = None,
        ip_limiter: IPRateLimiter | None = None,
        error_reporter: ErrorReporter | None = None,
        feedback_hook: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Safety configuration; defaults apply when omitted
            responder: Model call; the simulated responder is used when omitted
            user_limiter: Per-(user, model) limiter
            ip_limiter: Per-IP limiter with bans
            error_reporter: Destination for upstream and internal failures
            feedback_hook: Receives the message of every denial
        """
        self.config = config or SafetyConfig()
        self.responder: Responder = responder or simulate_response
        self.user_limiter = user_limiter or UserRateLimiter(self.config.user_limits)
        self.ip_limiter = ip_limiter or IPRateLimiter(self.config.ip_limits, store=IPLimiterStore())
        self.error_reporter = error_reporter or get_error_reporter()
        self.feedback_hook = feedback_hook
        self.logger = Logger()

        self.stats: dict[str, int] = {status.value: 0 for status in QueryStatus}
        self._stats_lock = threading.Lock()

    def run(
        self,
        prompt: str,
        *,
        user_id: str = "anonymous",
        model_id: str = "default",
        ip_address: str = "127.0.0.1",
        max_tokens: int = 1000,
    ) -> QueryResult:
        """Process a prompt.

        Args:
            prompt: Raw user prompt
            user_id: Subject for the per-user limiter
            model_id: Resource for the per-user limiter
            ip_address: Client address for the IP limiter
            max_tokens: Response budget; output is truncated to
                ``max_tokens * 4`` characters

        Returns:
            QueryResult describing the outcome
        """
        try:
            result = self._run(prompt, user_id, model_id, ip_address, max_tokens)
        except Exception as e:
            self.logger.exception(
                f"SafeQuery pipeline failed for user {sanitize_for_log(user_id)}"
            )
            self.error_reporter.report_error(
                e,
                {"component": "SafeQueryPipeline", "action": "run", "user_id": user_id},
                ErrorSeverity.HIGH,
            )
            result = self._deny(QueryStatus.INTERNAL_ERROR, MSG_INTERNAL)

        with self._stats_lock:
            self.stats[result.status.value] += 1
        if not result.allowed:
            self._send_feedback(result.error or "")
        return result

    def _send_feedback(self, message: str) -> None:
        if self.feedback_hook is None:
            return
        try:
            self.feedback_hook(message)
        except Exception:
            # The denial stands even if the hook cannot display it
            self.logger.exception("Feedback hook failed")

    def _run(
        self, prompt: str, user_id: str, model_id: str, ip_address: str, max_tokens: int
    ) -> QueryResult:
        if not prompt or not prompt.strip():
            return self._deny(QueryStatus.EMPTY, MSG_EMPTY)

        if len(prompt) > self.config.max_prompt_length:
            return self._deny(
                QueryStatus.TOO_LONG, MSG_TOO_LONG.format(limit=self.config.max_prompt_length)
            )

        match = find_harmful_pattern(prompt)
        if match is not None:
            self.logger.warning(
                f"Harmful prompt rejected for user {sanitize_for_log(user_id)} "
                f"(category: {match.category})"
            )
            return self._deny(QueryStatus.HARMFUL, MSG_HARMFUL)

        if detect_prompt_injection(prompt):
            self.logger.warning(
                f"Prompt injection rejected for user {sanitize_for_log(user_id)}"
            )
            return self._deny(QueryStatus.INJECTION, MSG_INJECTION)

        if not self.user_limiter.check(user_id, model_id):
            return self._deny(
                QueryStatus.RATE_LIMITED,
                MSG_RATE_LIMITED,
                quota=self.user_limiter.get_remaining_quota(user_id, model_id),
            )

        # Keyed on the bare address: user_id is caller-supplied, so an
        # ip:user key would let a banned client rotate ids to get back in
        ip_check = self.ip_limiter.check(ip_address)
        if not ip_check.allowed:
            status = ip_check.rate_limit_status
            ip_quota = QuotaInfo(
                requests_remaining_minute=status.requests_remaining_minute,
                requests_remaining_hour=status.requests_remaining_hour,
            )
            if status.banned:
                return self._deny(
                    QueryStatus.BANNED,
                    MSG_BANNED,
                    quota=ip_quota,
                    ban_expires_at=status.ban_expires_at,
                )
            return self._deny(QueryStatus.RATE_LIMITED, MSG_RATE_LIMITED, quota=ip_quota)

        try:
            raw_response = self.responder(prompt, model_id, max_tokens)
        except Exception as e:
            self.logger.error(
                f"Responder failed for model {sanitize_for_log(model_id)}: {sanitize_for_log(e)}"
            )
            self.error_reporter.report_error(
                e,
                {"component": "SafeQueryPipeline", "action": "respond", "model_id": model_id},
            )
            return self._deny(QueryStatus.UPSTREAM_ERROR, MSG_UPSTREAM)

        response = sanitize_output(
            raw_response,
            SanitizerOptions(
                max_length=max(1, max_tokens) * CHARS_PER_TOKEN,
                allowed_tags=RESPONSE_ALLOWED_TAGS,
            ),
        )
        return QueryResult(
            allowed=True,
            status=QueryStatus.OK,
            response=response,
            quota=self.user_limiter.get_remaining_quota(user_id, model_id),
        )

    def _deny(
        self,
        status: QueryStatus,
        message: str,
        *,
        quota: QuotaInfo | None = None,
        ban_expires_at: datetime | None = None,
    ) -> QueryResult:
        return QueryResult(
            allowed=False,
            status=status,
            error=message,
            quota=quota,
            ban_expires_at=ban_expires_at,
        )

    def get_remaining_quota(self, user_id: str = "anonymous", model_id: str = "default") -> QuotaInfo:
        """Remaining per-user quota for a model, without recording a request."""
        return self.user_limiter.get_remaining_quota(user_id, model_id)

    def get_stats(self) -> dict[str, Any]:
        """Get pipeline statistics.

        Returns:
            Dictionary with outcome counts and limiter statistics
        """
        with self._stats_lock:
            outcomes = dict(self.stats)
        return {
            "outcomes": outcomes,
            "user_limiter": self.user_limiter.get_stats(),
            "ip_limiter": self.ip_limiter.get_stats(),
        }
