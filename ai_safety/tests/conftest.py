"""Shared fixtures for the AI safety tests."""

import pytest


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms

    def advance_seconds(self, seconds: float) -> None:
        self.advance(seconds * 1000)

    def advance_minutes(self, minutes: float) -> None:
        self.advance(minutes * 60_000)


@pytest.fixture
def clock():
    return FakeClock()
