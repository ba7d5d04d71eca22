"""Tests for the per-user rate limiter."""

import logging

import pytest

from ai_safety.config import UserLimitConfig
from ai_safety.stages import rate_limiter as rate_limiter_module
from ai_safety.stages.rate_limiter import UserRateLimiter, make_user_key


@pytest.fixture
def limiter(clock):
    return UserRateLimiter(UserLimitConfig(max_requests_per_minute=5, max_requests_per_hour=20), clock=clock)


class TestAdmission:
    """Minute and hour windows."""

    def test_admits_exactly_the_minute_limit(self, limiter):
        results = [limiter.check("alice", "gpt") for _ in range(6)]
        assert results == [True] * 5 + [False]

    def test_remaining_quota_decreases_per_request(self, limiter):
        for _ in range(3):
            limiter.check("alice", "gpt")
        quota = limiter.get_remaining_quota("alice", "gpt")
        assert quota.requests_remaining_minute == 2
        assert quota.requests_remaining_hour == 17

    def test_minute_window_slides(self, limiter, clock):
        for _ in range(5):
            assert limiter.check("alice")
        assert not limiter.check("alice")
        clock.advance_seconds(60)
        assert limiter.check("alice")

    def test_hour_limit_applies_across_minutes(self, limiter, clock):
        admitted = 0
        for _ in range(4):
            admitted += sum(limiter.check("alice") for _ in range(5))
            clock.advance_minutes(1)
        assert admitted == 20
        assert not limiter.check("alice")
        assert limiter.get_stats()["blocked_hour"] == 1

    def test_hour_window_slides(self, limiter, clock):
        for _ in range(4):
            for _ in range(5):
                limiter.check("alice")
            clock.advance_minutes(1)
        assert not limiter.check("alice")
        clock.advance_minutes(60)
        assert limiter.check("alice")

    def test_denied_requests_are_not_recorded(self, limiter):
        for _ in range(10):
            limiter.check("alice")
        assert limiter.get_remaining_quota("alice").requests_remaining_hour == 15


class TestIsolation:
    def test_subjects_are_independent(self, limiter):
        for _ in range(5):
            limiter.check("alice", "gpt")
        assert not limiter.check("alice", "gpt")
        assert limiter.check("bob", "gpt")

    def test_resources_are_independent(self, limiter):
        for _ in range(5):
            limiter.check("alice", "gpt")
        assert limiter.check("alice", "claude")

    def test_reset_restores_full_quota(self, limiter):
        for _ in range(5):
            limiter.check("alice", "gpt")
        limiter.reset("alice", "gpt")
        quota = limiter.get_remaining_quota("alice", "gpt")
        assert quota.requests_remaining_minute == 5
        assert quota.requests_remaining_hour == 20

    def test_quota_lookup_does_not_record(self, limiter):
        limiter.get_remaining_quota("carol")
        assert limiter.get_stats()["tracked_keys"] == 0

    def test_key_format(self):
        assert make_user_key("alice", "gpt") == "alice:gpt"
        assert make_user_key("", "") == ":"


class TestLoggingAndStats:
    def test_denial_is_logged_with_sanitized_subject(self, limiter, caplog):
        for _ in range(5):
            limiter.check("eve\nINFO fake", "gpt")
        with caplog.at_level(logging.WARNING, logger="ai_safety.stages.rate_limiter"):
            assert not limiter.check("eve\nINFO fake", "gpt")
        assert "Rate limit exceeded (per minute)" in caplog.text
        assert "eve\\nINFO fake" in caplog.text

    def test_stats(self, limiter):
        for _ in range(7):
            limiter.check("alice")
        stats = limiter.get_stats()
        assert stats["total_requests"] == 7
        assert stats["blocked_requests"] == 2
        assert stats["blocked_minute"] == 2
        assert stats["max_requests_per_minute"] == 5

    def test_properties_expose_config(self, limiter):
        assert limiter.max_requests_per_minute == 5
        assert limiter.max_requests_per_hour == 20


class TestSharedLimiter:
    def test_module_helpers_use_one_instance(self, monkeypatch):
        monkeypatch.setattr(rate_limiter_module, "_global_limiter", None)
        shared = rate_limiter_module.get_rate_limiter(UserLimitConfig(max_requests_per_minute=1))
        assert rate_limiter_module.get_rate_limiter() is shared
        assert rate_limiter_module.check_rate_limit("alice", "gpt")
        assert not rate_limiter_module.check_rate_limit("alice", "gpt")
        rate_limiter_module.reset_rate_limit("alice", "gpt")
        assert rate_limiter_module.check_rate_limit("alice", "gpt")
