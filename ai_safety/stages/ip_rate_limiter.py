"""IP-based rate limiting with escalating bans.

Requests are keyed by IP address, optionally combined with a user id. Keys
that keep hitting the hourly limit accumulate violations and are banned for a
configurable duration once the ban threshold is reached.

All mutable state lives in an :class:`IPLimiterStore` that is created once at
startup and injected, so tests get isolated tables without a global reset.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from utils.log_sanitizer import sanitize_for_log

from ..config import IPLimitConfig
from .window_counter import HOUR_MS, MINUTE_MS, Clock, TimeWindowedCounter, system_clock

logger = logging.getLogger(__name__)


@dataclass
class IPLimiterStore:
    """Event logs, violation counters and bans for the IP limiter.

    One coarse lock guards all three tables; it is held for the whole check
    sequence so check-then-record stays atomic under threads.
    """

    events: TimeWindowedCounter = field(default_factory=TimeWindowedCounter)
    violations: dict[str, int] = field(default_factory=dict)
    bans: dict[str, float] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def clear(self) -> None:
        with self.lock:
            self.events.clear_all()
            self.violations.clear()
            self.bans.clear()


@dataclass(frozen=True)
class RateLimitStatus:
    """Rate limit details reported alongside an IP check."""

    requests_remaining_minute: int
    requests_remaining_hour: int
    banned: bool = False
    ban_expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests_remaining_minute": self.requests_remaining_minute,
            "requests_remaining_hour": self.requests_remaining_hour,
            "banned": self.banned,
            "ban_expires_at": self.ban_expires_at.isoformat() if self.ban_expires_at else None,
        }


@dataclass(frozen=True)
class IPCheckResult:
    allowed: bool
    rate_limit_status: RateLimitStatus


def make_ip_key(ip_address: str, user_id: str | None = None) -> str:
    """Build the opaque key for an IP, optionally scoped to a user."""
    return f"{ip_address}:{user_id}" if user_id else ip_address


def _ms_to_datetime(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=UTC)


class IPRateLimiter:
    """Per-IP limiter with violation tracking and temporary bans."""

    def __init__(
        self,
        config: IPLimitConfig | None = None,
        *,
        store: IPLimiterStore | None = None,
        clock: Clock | None = None,
    ):
        """Initialize the limiter.

        Args:
            config: Thresholds and ban policy
            store: Shared state tables; a fresh store is created if omitted
            clock: Callable returning epoch milliseconds (injectable for tests)
        """
        self.config = config or IPLimitConfig()
        self.store = store if store is not None else IPLimiterStore()
        self._clock = clock or system_clock

        self.stats = {
            "total_requests": 0,
            "blocked_requests": 0,
            "bans_issued": 0,
        }

    def configure(
        self,
        max_requests_per_minute: int | None = None,
        max_requests_per_hour: int | None = None,
        ban_threshold: int | None = None,
        ban_duration_minutes: int | None = None,
    ) -> IPLimitConfig:
        """Update thresholds; omitted values keep their current setting.

        Existing bans keep the expiry they were issued with.

        Raises:
            ConfigurationError: If a supplied value is below 1
        """
        updates = {
            name: value
            for name, value in (
                ("max_requests_per_minute", max_requests_per_minute),
                ("max_requests_per_hour", max_requests_per_hour),
                ("ban_threshold", ban_threshold),
                ("ban_duration_minutes", ban_duration_minutes),
            )
            if value is not None
        }
        with self.store.lock:
            self.config = replace(self.config, **updates)
        logger.info("IP rate limiter reconfigured: %s", updates)
        return self.config

    def check(self, ip_address: str, user_id: str | None = None) -> IPCheckResult:
        """Check whether a request from ``ip_address`` may proceed.

        Args:
            ip_address: Client IP address
            user_id: Optional user id for per-user-per-IP tracking

        Returns:
            IPCheckResult with the decision and quota/ban details
        """
        key = make_ip_key(ip_address, user_id)
        store = self.store
        cfg = self.config

        with store.lock:
            now = self._clock()
            self.stats["total_requests"] += 1

            expires = store.bans.get(key)
            if expires is not None:
                if expires > now:
                    return self._deny(0, 0, banned=True, expires=expires)
                # Ban expired
                del store.bans[key]

            store.events.prune(key, now, HOUR_MS)
            hour_count = store.events.count_within(key, now, HOUR_MS)

            if hour_count >= cfg.max_requests_per_hour:
                violations = store.violations.get(key, 0) + 1
                store.violations[key] = violations

                if violations >= cfg.ban_threshold:
                    expires = now + cfg.ban_duration_minutes * MINUTE_MS
                    store.bans[key] = expires
                    store.violations.pop(key, None)
                    self.stats["bans_issued"] += 1
                    logger.warning(
                        "Banning %s for %d minutes after %d hourly violations",
                        sanitize_for_log(key),
                        cfg.ban_duration_minutes,
                        violations,
                    )
                    return self._deny(0, 0, banned=True, expires=expires)

                logger.warning(
                    "Hourly IP limit exceeded for %s (violation %d/%d)",
                    sanitize_for_log(key),
                    violations,
                    cfg.ban_threshold,
                )
                return self._deny(0, 0)

            minute_count = store.events.count_within(key, now, MINUTE_MS)
            if minute_count >= cfg.max_requests_per_minute:
                # Counted, but minute violations never install a ban by themselves
                store.violations[key] = store.violations.get(key, 0) + 1
                logger.warning("Per-minute IP limit exceeded for %s", sanitize_for_log(key))
                return self._deny(0, max(0, cfg.max_requests_per_hour - hour_count))

            store.events.record(key, now)
            return IPCheckResult(
                allowed=True,
                rate_limit_status=RateLimitStatus(
                    requests_remaining_minute=max(0, cfg.max_requests_per_minute - (minute_count + 1)),
                    requests_remaining_hour=max(0, cfg.max_requests_per_hour - (hour_count + 1)),
                ),
            )

    def _deny(
        self,
        remaining_minute: int,
        remaining_hour: int,
        *,
        banned: bool = False,
        expires: float | None = None,
    ) -> IPCheckResult:
        self.stats["blocked_requests"] += 1
        return IPCheckResult(
            allowed=False,
            rate_limit_status=RateLimitStatus(
                requests_remaining_minute=remaining_minute,
                requests_remaining_hour=remaining_hour,
                banned=banned,
                ban_expires_at=_ms_to_datetime(expires) if expires is not None else None,
            ),
        )

    def is_banned(self, ip_address: str, user_id: str | None = None) -> bool:
        """Report whether a key currently has an unexpired ban."""
        key = make_ip_key(ip_address, user_id)
        with self.store.lock:
            expires = self.store.bans.get(key)
            return expires is not None and expires > self._clock()

    def get_violation_count(self, ip_address: str, user_id: str | None = None) -> int:
        with self.store.lock:
            return self.store.violations.get(make_ip_key(ip_address, user_id), 0)

    def unban(self, ip_address: str, user_id: str | None = None) -> None:
        """Remove the ban and violation history for a key."""
        key = make_ip_key(ip_address, user_id)
        with self.store.lock:
            self.store.bans.pop(key, None)
            self.store.violations.pop(key, None)
        logger.info("Unbanned %s", sanitize_for_log(key))

    def reset(self) -> None:
        """Clear all event logs, bans and violation counters."""
        self.store.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get limiter statistics.

        Returns:
            Dictionary of statistics
        """
        with self.store.lock:
            now = self._clock()
            return {
                "total_requests": self.stats["total_requests"],
                "blocked_requests": self.stats["blocked_requests"],
                "bans_issued": self.stats["bans_issued"],
                "active_bans": sum(1 for expires in self.store.bans.values() if expires > now),
                "tracked_keys": len(self.store.events),
                "max_requests_per_minute": self.config.max_requests_per_minute,
                "max_requests_per_hour": self.config.max_requests_per_hour,
                "ban_threshold": self.config.ban_threshold,
                "ban_duration_minutes": self.config.ban_duration_minutes,
            }
