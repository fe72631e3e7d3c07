"""
Tests for the dashboard rate limiter.

Covers: allow under limit, block over limit, window expiry, singleton.
"""

import time
from unittest.mock import patch

import pytest

from study_insights.services.rate_limiter import (
    SlidingWindowRateLimiter,
    get_rate_limiter,
    reset_rate_limiter,
)


@pytest.mark.unit
class TestSlidingWindowRateLimiter:
    """In-memory sliding window rate limiter."""

    def test_allows_under_limit(self) -> None:
        limiter = SlidingWindowRateLimiter()
        for _ in range(5):
            assert limiter.check("insights:abc", rpm_limit=10) is True

    def test_blocks_over_limit(self) -> None:
        limiter = SlidingWindowRateLimiter()
        for _ in range(10):
            limiter.check("insights:abc", rpm_limit=10)
        assert limiter.check("insights:abc", rpm_limit=10) is False

    def test_keys_have_separate_windows(self) -> None:
        limiter = SlidingWindowRateLimiter()
        for _ in range(10):
            limiter.check("insights:abc", rpm_limit=10)
        assert limiter.check("insights:def", rpm_limit=10) is True

    def test_window_expiry_allows_new_requests(self) -> None:
        limiter = SlidingWindowRateLimiter()
        now = time.monotonic()
        for _ in range(10):
            limiter.check("insights:abc", rpm_limit=10)

        with patch("study_insights.services.rate_limiter.time") as mock_time:
            mock_time.monotonic.return_value = now + 61.0
            assert limiter.check("insights:abc", rpm_limit=10) is True

    def test_reset_clears_all_windows(self) -> None:
        limiter = SlidingWindowRateLimiter()
        for _ in range(10):
            limiter.check("insights:abc", rpm_limit=10)
        limiter.reset()
        assert limiter.check("insights:abc", rpm_limit=10) is True

    def test_singleton(self) -> None:
        reset_rate_limiter()
        assert get_rate_limiter() is get_rate_limiter()
        first = get_rate_limiter()
        reset_rate_limiter()
        assert get_rate_limiter() is not first


@pytest.mark.unit
class TestIdleKeyEviction:
    """Quiet callers do not keep their windows alive."""

    def test_idle_keys_swept_on_later_check(self) -> None:
        limiter = SlidingWindowRateLimiter()
        now = time.monotonic()
        for token in ("insights:a", "insights:b", "insights:c"):
            limiter.check(token, rpm_limit=10)
        assert len(limiter) == 3

        with patch("study_insights.services.rate_limiter.time") as mock_time:
            mock_time.monotonic.return_value = now + 61.0
            assert limiter.check("insights:d", rpm_limit=10) is True

        assert len(limiter) == 1

    def test_active_keys_survive_sweep(self) -> None:
        limiter = SlidingWindowRateLimiter()
        now = time.monotonic()
        limiter.check("insights:old", rpm_limit=10)

        with patch("study_insights.services.rate_limiter.time") as mock_time:
            mock_time.monotonic.return_value = now + 30.0
            limiter.check("insights:recent", rpm_limit=10)
            mock_time.monotonic.return_value = now + 61.0
            limiter.check("insights:new", rpm_limit=10)

        assert len(limiter) == 2

    def test_blocked_key_still_counts_in_window(self) -> None:
        limiter = SlidingWindowRateLimiter(window_seconds=10.0)
        now = time.monotonic()
        for _ in range(3):
            limiter.check("insights:a", rpm_limit=3)

        with patch("study_insights.services.rate_limiter.time") as mock_time:
            mock_time.monotonic.return_value = now + 5.0
            assert limiter.check("insights:a", rpm_limit=3) is False
            mock_time.monotonic.return_value = now + 11.0
            assert limiter.check("insights:a", rpm_limit=3) is True
