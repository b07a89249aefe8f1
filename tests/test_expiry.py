"""Tests for expiry arithmetic helpers."""

import time

from expiry_cache.services.expiry import (
    ALREADY_EXPIRED,
    NEVER_EXPIRES,
    expires_in,
    is_past,
    now_ms,
    remaining,
)


class TestExpiresIn:
    """Test expires_in() with and without the never-expires sentinel."""

    def test_positive_duration_adds_to_now(self):
        """Positive duration is added to now."""
        assert expires_in(200, 1000) == 1200

    def test_zero_duration_never_expires_by_default(self):
        """Zero duration maps to NEVER_EXPIRES."""
        assert expires_in(0, 1000) == NEVER_EXPIRES

    def test_zero_duration_is_now_without_never(self):
        """Zero duration is now when never-expire is off."""
        assert expires_in(0, 1000, allow_never=False) == 1000

    def test_positive_duration_ignores_allow_never(self):
        """allow_never has no effect on positive durations."""
        assert expires_in(50, 1000, allow_never=False) == 1050


class TestIsPast:
    """Test is_past() boundaries."""

    def test_before_expiry(self):
        """Instant before expiry is not past."""
        assert is_past(1200, 1199) is False

    def test_exactly_at_expiry(self):
        """An instant equal to now counts as expired."""
        assert is_past(1200, 1200) is True

    def test_already_expired_sentinel_is_always_past(self):
        """ALREADY_EXPIRED is past for any clock value."""
        assert is_past(ALREADY_EXPIRED, 0) is True


class TestRemaining:
    """Test remaining() clamps at zero."""

    def test_remaining_time(self):
        """remaining returns the milliseconds left."""
        assert remaining(1200, 1000) == 200

    def test_clamped_at_zero(self):
        """remaining never goes negative."""
        assert remaining(1000, 5000) == 0
        assert remaining(ALREADY_EXPIRED, 5000) == 0


def test_now_ms_tracks_wall_clock():
    """now_ms returns wall-clock milliseconds."""
    before = int(time.time() * 1000)
    value = now_ms()
    after = int(time.time() * 1000)
    assert isinstance(value, int)
    assert before <= value <= after


def test_sentinels_are_distinct():
    """The two sentinels differ."""
    assert NEVER_EXPIRES != ALREADY_EXPIRED
