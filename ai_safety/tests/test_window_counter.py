"""Tests for the time-windowed event counter."""

from ai_safety.stages.window_counter import HOUR_MS, MINUTE_MS, TimeWindowedCounter


class TestCounting:
    """Trailing-window counting."""

    def test_unseen_key_counts_zero(self):
        counter = TimeWindowedCounter()
        assert counter.count_within("nobody", 1000, MINUTE_MS) == 0
        assert "nobody" not in counter

    def test_events_inside_window_are_counted(self):
        counter = TimeWindowedCounter()
        for t in (0, 10_000, 20_000):
            counter.record("k", t)
        assert counter.count_within("k", 30_000, MINUTE_MS) == 3

    def test_window_boundary_is_exclusive(self):
        """An event exactly one window old no longer counts."""
        counter = TimeWindowedCounter()
        counter.record("k", 0)
        assert counter.count_within("k", MINUTE_MS - 1, MINUTE_MS) == 1
        assert counter.count_within("k", MINUTE_MS, MINUTE_MS) == 0

    def test_minute_and_hour_windows_differ(self):
        counter = TimeWindowedCounter()
        counter.record("k", 0)
        counter.record("k", 30 * MINUTE_MS)
        now = 30 * MINUTE_MS + 1
        assert counter.count_within("k", now, MINUTE_MS) == 1
        assert counter.count_within("k", now, HOUR_MS) == 2

    def test_out_of_order_records_stay_sorted(self):
        counter = TimeWindowedCounter()
        counter.record("k", 50_000)
        counter.record("k", 10_000)
        counter.record("k", 30_000)
        assert counter.count_within("k", 70_000, MINUTE_MS) == 2


class TestMaintenance:
    """Pruning and clearing."""

    def test_prune_drops_stale_events_and_forgets_empty_keys(self):
        counter = TimeWindowedCounter()
        counter.record("k", 0)
        counter.prune("k", HOUR_MS)
        assert "k" not in counter
        assert len(counter) == 0

    def test_prune_keeps_recent_events(self):
        counter = TimeWindowedCounter()
        counter.record("k", 0)
        counter.record("k", HOUR_MS - 1)
        counter.prune("k", HOUR_MS)
        assert counter.total_events() == 1

    def test_prune_unknown_key_is_noop(self):
        counter = TimeWindowedCounter()
        counter.prune("missing", 0)
        assert len(counter) == 0

    def test_clear_and_clear_all(self):
        counter = TimeWindowedCounter()
        counter.record("a", 1)
        counter.record("b", 1)
        counter.clear("a")
        assert "a" not in counter
        assert "b" in counter
        counter.clear_all()
        assert counter.total_events() == 0
