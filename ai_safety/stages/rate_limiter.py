"""Per-user rate limiting for AI model calls.

Admits requests per ``(subject, resource)`` pair using a one-minute and a
one-hour sliding window. Denials are returned as ``False`` and logged at
warning level; nothing here raises for an exceeded quota.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from utils.log_sanitizer import sanitize_for_log

from ..config import UserLimitConfig
from .window_counter import HOUR_MS, MINUTE_MS, Clock, TimeWindowedCounter, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaInfo:
    """Remaining quota for a key."""

    requests_remaining_minute: int
    requests_remaining_hour: int

    def to_dict(self) -> dict[str, int]:
        return {
            "requests_remaining_minute": self.requests_remaining_minute,
            "requests_remaining_hour": self.requests_remaining_hour,
        }


def make_user_key(subject_id: str, resource_id: str = "default") -> str:
    """Build the opaque request key for a subject/resource pair."""
    return f"{subject_id}:{resource_id}"


class UserRateLimiter:
    """Sliding-window rate limiter keyed by subject and resource.

    Each ``(subject_id, resource_id)`` pair has its own event log, so
    exhausting one resource never affects another resource or subject.
    """

    def __init__(self, config: UserLimitConfig | None = None, *, clock: Clock | None = None):
        """Initialize with configuration.

        Args:
            config: Per-minute and per-hour limits
            clock: Callable returning epoch milliseconds (injectable for tests)
        """
        self.config = config or UserLimitConfig()
        self._clock = clock or system_clock
        self._events = TimeWindowedCounter()
        self._lock = threading.Lock()

        self.stats = {
            "total_requests": 0,
            "blocked_requests": 0,
            "blocked_minute": 0,
            "blocked_hour": 0,
        }

    @property
    def max_requests_per_minute(self) -> int:
        return self.config.max_requests_per_minute

    @property
    def max_requests_per_hour(self) -> int:
        return self.config.max_requests_per_hour

    def check(self, subject_id: str, resource_id: str = "default") -> bool:
        """Check whether a request may proceed, recording it if so.

        Args:
            subject_id: User identifier (or IP) being limited
            resource_id: Limited operation, e.g. a model name

        Returns:
            True if the request was admitted
        """
        key = make_user_key(subject_id, resource_id)
        with self._lock:
            now = self._clock()
            self.stats["total_requests"] += 1
            self._events.prune(key, now, HOUR_MS)

            # Hourly limit takes precedence for the logged reason
            if self._events.count_within(key, now, HOUR_MS) >= self.config.max_requests_per_hour:
                self._deny("hour")
                logger.warning(
                    "Rate limit exceeded (hourly) for user %s on %s",
                    sanitize_for_log(subject_id),
                    sanitize_for_log(resource_id),
                )
                return False

            if self._events.count_within(key, now, MINUTE_MS) >= self.config.max_requests_per_minute:
                self._deny("minute")
                logger.warning(
                    "Rate limit exceeded (per minute) for user %s on %s",
                    sanitize_for_log(subject_id),
                    sanitize_for_log(resource_id),
                )
                return False

            self._events.record(key, now)
            return True

    def _deny(self, window: str) -> None:
        self.stats["blocked_requests"] += 1
        self.stats[f"blocked_{window}"] += 1

    def get_remaining_quota(self, subject_id: str, resource_id: str = "default") -> QuotaInfo:
        """Return the remaining quota without recording anything.

        Args:
            subject_id: User identifier
            resource_id: Limited operation

        Returns:
            QuotaInfo with per-minute and per-hour remaining requests
        """
        key = make_user_key(subject_id, resource_id)
        with self._lock:
            now = self._clock()
            minute_count = self._events.count_within(key, now, MINUTE_MS)
            hour_count = self._events.count_within(key, now, HOUR_MS)

        return QuotaInfo(
            requests_remaining_minute=max(0, self.config.max_requests_per_minute - minute_count),
            requests_remaining_hour=max(0, self.config.max_requests_per_hour - hour_count),
        )

    def reset(self, subject_id: str, resource_id: str = "default") -> None:
        """Clear the full event log for a subject/resource pair."""
        with self._lock:
            self._events.clear(make_user_key(subject_id, resource_id))

    def get_stats(self) -> dict[str, Any]:
        """Get rate limiter statistics.

        Returns:
            Dictionary of statistics
        """
        with self._lock:
            total = self.stats["total_requests"]
            return {
                "total_requests": total,
                "blocked_requests": self.stats["blocked_requests"],
                "blocked_minute": self.stats["blocked_minute"],
                "blocked_hour": self.stats["blocked_hour"],
                "block_rate": self.stats["blocked_requests"] / total if total > 0 else 0,
                "tracked_keys": len(self._events),
                "max_requests_per_minute": self.config.max_requests_per_minute,
                "max_requests_per_hour": self.config.max_requests_per_hour,
            }


# Global rate limiter instance
_global_limiter: UserRateLimiter | None = None


def get_rate_limiter(config: UserLimitConfig | None = None) -> UserRateLimiter:
    """Get or create the shared user rate limiter.

    Args:
        config: Optional configuration, only used on first creation

    Returns:
        UserRateLimiter instance
    """
    global _global_limiter
    if _global_limiter is None:
        _global_limiter = UserRateLimiter(config)
    return _global_limiter


def check_rate_limit(subject_id: str, resource_id: str = "default") -> bool:
    """Check a request against the shared limiter."""
    return get_rate_limiter().check(subject_id, resource_id)


def reset_rate_limit(subject_id: str, resource_id: str = "default") -> None:
    """Reset a subject/resource pair on the shared limiter."""
    get_rate_limiter().reset(subject_id, resource_id)
