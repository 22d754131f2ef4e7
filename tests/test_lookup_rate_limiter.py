from __future__ import annotations

import pytest

from services.lookup_rate_limiter import LookupRateLimiter


def test_second_request_inside_window_is_blocked(monotonic) -> None:
    limiter = LookupRateLimiter(2000, clock=monotonic)

    assert limiter.allow("42") is True
    monotonic.advance(1.999)
    assert limiter.allow("42") is False


def test_request_after_window_is_allowed(monotonic) -> None:
    limiter = LookupRateLimiter(2000, clock=monotonic)

    assert limiter.allow("42") is True
    monotonic.advance(2.0)
    assert limiter.allow("42") is True


def test_blocked_requests_do_not_extend_the_window(monotonic) -> None:
    limiter = LookupRateLimiter(2000, clock=monotonic)

    assert limiter.allow("42") is True
    monotonic.advance(1.5)
    assert limiter.allow("42") is False
    monotonic.advance(0.5)
    assert limiter.allow("42") is True


def test_users_are_limited_independently(monotonic) -> None:
    limiter = LookupRateLimiter(2000, clock=monotonic)

    assert limiter.allow("1") is True
    assert limiter.allow("2") is True
    assert limiter.allow(1) is False


def test_reset_clears_history(monotonic) -> None:
    limiter = LookupRateLimiter(2000, clock=monotonic)
    limiter.allow("1")
    limiter.allow("2")

    limiter.reset("1")
    assert limiter.allow("1") is True
    assert limiter.allow("2") is False

    limiter.reset()
    assert limiter.allow("2") is True


def test_zero_interval_never_blocks(monotonic) -> None:
    limiter = LookupRateLimiter(0, clock=monotonic)

    assert all(limiter.allow("1") for _ in range(5))
    assert limiter.interval_ms == 0


def test_negative_interval_is_rejected() -> None:
    with pytest.raises(ValueError):
        LookupRateLimiter(-1)
