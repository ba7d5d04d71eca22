"""Time-windowed event counter shared by the rate limiters.

Stores a sorted list of event timestamps (epoch milliseconds) per key and
answers "how many events in the trailing window" questions. The caller always
supplies ``now`` so that tests can drive the clock deterministically.
"""

from __future__ import annotations

import time
from bisect import bisect_right, insort
from collections.abc import Callable

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

Clock = Callable[[], float]


def system_clock() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


class TimeWindowedCounter:
    """Per-key event log with trailing-window counting.

    Keys are created lazily by :meth:`record`; read operations never create
    entries. Timestamps are kept sorted so counting is a binary search.
    """

    def __init__(self) -> None:
        self._events: dict[str, list[float]] = {}

    def record(self, key: str, now: float) -> None:
        """Record one event for ``key`` at ``now``.

        Args:
            key: Opaque request key
            now: Event timestamp in epoch milliseconds
        """
        events = self._events.setdefault(key, [])
        if not events or events[-1] <= now:
            events.append(now)
        else:
            # Clock went backwards (injected clocks do this in tests)
            insort(events, now)

    def count_within(self, key: str, now: float, window_ms: float) -> int:
        """Count events for ``key`` with ``timestamp > now - window_ms``.

        Args:
            key: Opaque request key
            now: Reference time in epoch milliseconds
            window_ms: Length of the trailing window

        Returns:
            Number of events inside the window (0 for unseen keys)
        """
        events = self._events.get(key)
        if not events:
            return 0
        cutoff = now - window_ms
        return len(events) - bisect_right(events, cutoff)

    def prune(self, key: str, now: float, max_window_ms: float = HOUR_MS) -> None:
        """Drop events at or before ``now - max_window_ms``.

        The key is forgotten entirely once its log is empty.
        """
        events = self._events.get(key)
        if events is None:
            return
        stale = bisect_right(events, now - max_window_ms)
        if stale:
            del events[:stale]
        if not events:
            del self._events[key]

    def clear(self, key: str) -> None:
        """Forget every event recorded for ``key``."""
        self._events.pop(key, None)

    def clear_all(self) -> None:
        self._events.clear()

    def total_events(self) -> int:
        return sum(len(events) for events in self._events.values())

    def __contains__(self, key: object) -> bool:
        return key in self._events

    def __len__(self) -> int:
        return len(self._events)
