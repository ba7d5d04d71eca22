"""Tests for the IP rate limiter and its ban policy."""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
import threading

import pytest

from ai_safety.config import ConfigurationError, IPLimitConfig
from ai_safety.stages.ip_rate_limiter import IPLimiterStore, IPRateLimiter, make_ip_key

IP = "203.0.113.7"


@pytest.fixture
def config():
    return IPLimitConfig(
        max_requests_per_minute=3,
        max_requests_per_hour=5,
        ban_threshold=2,
        ban_duration_minutes=10,
    )


@pytest.fixture
def limiter(config, clock):
    return IPRateLimiter(config, store=IPLimiterStore(), clock=clock)


def _fill_hour(limiter, clock, ip=IP, user_id=None):
    """Use the full hourly quota without tripping the minute limit."""
    admitted = 0
    while admitted < limiter.config.max_requests_per_hour:
        if limiter.check(ip, user_id).allowed:
            admitted += 1
        else:
            clock.advance_minutes(1)


class TestMinuteLimit:
    def test_allows_up_to_minute_limit(self, limiter):
        results = [limiter.check(IP).allowed for _ in range(4)]
        assert results == [True, True, True, False]

    def test_remaining_counts_include_current_request(self, limiter):
        status = limiter.check(IP).rate_limit_status
        assert status.requests_remaining_minute == 2
        assert status.requests_remaining_hour == 4
        assert status.banned is False
        assert status.ban_expires_at is None

    def test_minute_denial_reports_hourly_remaining(self, limiter):
        for _ in range(3):
            limiter.check(IP)
        status = limiter.check(IP).rate_limit_status
        assert status.requests_remaining_minute == 0
        assert status.requests_remaining_hour == 2
        assert status.banned is False

    def test_minute_violations_count_but_never_ban(self, limiter):
        for _ in range(3):
            limiter.check(IP)
        for _ in range(5):
            assert not limiter.check(IP).rate_limit_status.banned
        assert limiter.get_violation_count(IP) == 5
        assert not limiter.is_banned(IP)


class TestBans:
    def test_hourly_violations_lead_to_ban(self, limiter, clock):
        _fill_hour(limiter, clock)
        violations_before = limiter.get_violation_count(IP)

        first = limiter.check(IP)
        assert not first.allowed
        assert first.rate_limit_status.requests_remaining_hour == 0
        # Minute violations from filling count towards the threshold
        if violations_before + 1 < limiter.config.ban_threshold:
            assert not first.rate_limit_status.banned
            second = limiter.check(IP)
        else:
            second = first
        assert second.rate_limit_status.banned
        assert limiter.is_banned(IP)
        # Violations are cleared once the ban is issued
        assert limiter.get_violation_count(IP) == 0

    def test_ban_expiry_is_now_plus_duration(self, config, clock):
        limiter = IPRateLimiter(
            IPLimitConfig(
                max_requests_per_minute=10,
                max_requests_per_hour=2,
                ban_threshold=1,
                ban_duration_minutes=10,
            ),
            clock=clock,
        )
        limiter.check(IP)
        limiter.check(IP)
        result = limiter.check(IP)
        assert result.rate_limit_status.banned
        expected = datetime.fromtimestamp((clock.now + 10 * 60_000) / 1000, tz=UTC)
        assert result.rate_limit_status.ban_expires_at == expected

    def test_banned_until_expiry_then_evaluated_normally(self, clock):
        limiter = IPRateLimiter(
            IPLimitConfig(
                max_requests_per_minute=10,
                max_requests_per_hour=2,
                ban_threshold=1,
                ban_duration_minutes=10,
            ),
            clock=clock,
        )
        limiter.check(IP)
        limiter.check(IP)
        assert limiter.check(IP).rate_limit_status.banned

        clock.advance_minutes(9)
        banned = limiter.check(IP)
        assert not banned.allowed
        assert banned.rate_limit_status.banned
        assert banned.rate_limit_status.requests_remaining_minute == 0
        assert banned.rate_limit_status.requests_remaining_hour == 0

        # Expired ban is evaluated normally; the hourly window is still full
        clock.advance_minutes(1)
        after = limiter.check(IP)
        assert after.rate_limit_status.banned
        assert after.rate_limit_status.ban_expires_at > banned.rate_limit_status.ban_expires_at

        clock.advance_minutes(61)
        assert limiter.check(IP).allowed

    def test_unban_lifts_ban(self, clock):
        limiter = IPRateLimiter(
            IPLimitConfig(max_requests_per_minute=10, max_requests_per_hour=1, ban_threshold=1),
            clock=clock,
        )
        limiter.check(IP)
        assert limiter.check(IP).rate_limit_status.banned
        limiter.unban(IP)
        assert not limiter.is_banned(IP)
        assert limiter.get_violation_count(IP) == 0

    def test_stats_track_bans(self, clock):
        limiter = IPRateLimiter(
            IPLimitConfig(max_requests_per_minute=10, max_requests_per_hour=1, ban_threshold=1),
            clock=clock,
        )
        limiter.check(IP)
        limiter.check(IP)
        stats = limiter.get_stats()
        assert stats["bans_issued"] == 1
        assert stats["active_bans"] == 1
        assert stats["blocked_requests"] == 1
        assert stats["total_requests"] == 2


class TestKeys:
    def test_user_scoped_keys_are_independent(self, limiter):
        for _ in range(3):
            limiter.check(IP, "alice")
        assert not limiter.check(IP, "alice").allowed
        assert limiter.check(IP, "bob").allowed
        assert limiter.check(IP).allowed

    def test_key_format(self):
        assert make_ip_key(IP) == IP
        assert make_ip_key(IP, "alice") == f"{IP}:alice"
        assert make_ip_key(IP, "") == IP

    def test_empty_key_is_valid(self, limiter):
        assert limiter.check("").allowed


class TestStoreAndConfig:
    def test_shared_store_is_shared_state(self, config, clock):
        store = IPLimiterStore()
        first = IPRateLimiter(config, store=store, clock=clock)
        second = IPRateLimiter(config, store=store, clock=clock)
        for _ in range(3):
            first.check(IP)
        assert not second.check(IP).allowed

    def test_separate_stores_are_isolated(self, config, clock):
        first = IPRateLimiter(config, clock=clock)
        second = IPRateLimiter(config, clock=clock)
        for _ in range(3):
            first.check(IP)
        assert second.check(IP).allowed

    def test_reset_clears_everything(self, limiter, clock):
        _fill_hour(limiter, clock)
        limiter.check(IP)
        limiter.check(IP)
        limiter.reset()
        assert not limiter.is_banned(IP)
        assert limiter.get_violation_count(IP) == 0
        assert limiter.check(IP).allowed

    def test_configure_updates_thresholds(self, limiter):
        updated = limiter.configure(max_requests_per_minute=1, ban_duration_minutes=5)
        assert updated.max_requests_per_minute == 1
        assert updated.ban_duration_minutes == 5
        assert updated.max_requests_per_hour == 5
        assert limiter.check(IP).allowed
        assert not limiter.check(IP).allowed

    def test_configure_rejects_invalid_values(self, limiter):
        with pytest.raises(ConfigurationError):
            limiter.configure(ban_threshold=0)
        assert limiter.config.ban_threshold == 2

    def test_status_to_dict(self, clock):
        limiter = IPRateLimiter(
            IPLimitConfig(max_requests_per_minute=10, max_requests_per_hour=1, ban_threshold=1),
            clock=clock,
        )
        limiter.check(IP)
        data = limiter.check(IP).rate_limit_status.to_dict()
        assert data["banned"] is True
        assert data["ban_expires_at"].endswith("+00:00")


class TestConcurrency:
    """Check sequences are atomic under the store lock."""

    def test_concurrent_checks_admit_exactly_the_limit(self, clock):
        limiter = IPRateLimiter(
            IPLimitConfig(max_requests_per_minute=50, max_requests_per_hour=1000),
            store=IPLimiterStore(),
            clock=clock,
        )
        start = threading.Barrier(8)

        def worker() -> int:
            start.wait()
            return sum(limiter.check(IP).allowed for _ in range(25))

        with ThreadPoolExecutor(max_workers=8) as pool:
            admitted = sum(pool.map(lambda _: worker(), range(8)))

        assert admitted == 50
        assert limiter.store.events.count_within(IP, clock(), 60_000) == 50
        assert limiter.get_violation_count(IP) == 150
