from __future__ import annotations

import pytest

from expiry_cache.config import get_settings


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fresh_settings():
    """Drop cached settings before and after the test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
