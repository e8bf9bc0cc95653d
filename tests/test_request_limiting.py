"""Tests for per-IP request limits."""

import pytest

from Security.request_limiting import RequestRateLimiter, create_api_limiter, create_auth_limiter
from Security.security_config import SECURITY_SETTINGS


class Ticker:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def limiter(ticker):
    return RequestRateLimiter(max_requests=3, window_seconds=60, clock=ticker)


def test_allows_up_to_limit(limiter):
    assert [limiter.allow("1.2.3.4") for _ in range(4)] == [True, True, True, False]


def test_keys_are_independent(limiter):
    for _ in range(3):
        limiter.allow("1.2.3.4")

    assert limiter.allow("5.6.7.8") is True


def test_window_slides(limiter, ticker):
    limiter.allow("1.2.3.4")
    ticker.now += 30
    limiter.allow("1.2.3.4")
    limiter.allow("1.2.3.4")
    assert limiter.allow("1.2.3.4") is False

    ticker.now += 30
    assert limiter.allow("1.2.3.4") is True
    assert limiter.allow("1.2.3.4") is False


def test_retry_after_counts_down_to_oldest_hit(limiter, ticker):
    assert limiter.retry_after("1.2.3.4") == 0
    for _ in range(3):
        limiter.allow("1.2.3.4")

    assert limiter.retry_after("1.2.3.4") == 60
    ticker.now += 59.5
    assert limiter.retry_after("1.2.3.4") == 1


def test_rejected_requests_do_not_extend_the_window(limiter, ticker):
    for _ in range(3):
        limiter.allow("1.2.3.4")
    for _ in range(10):
        ticker.now += 5
        limiter.allow("1.2.3.4")

    ticker.now += 10
    assert limiter.allow("1.2.3.4") is True


def test_reset(limiter):
    for _ in range(3):
        limiter.allow("1.2.3.4")
        limiter.allow("5.6.7.8")

    limiter.reset("1.2.3.4")
    assert limiter.allow("1.2.3.4") is True
    assert limiter.allow("5.6.7.8") is False

    limiter.reset()
    assert limiter.allow("5.6.7.8") is True


def test_factories_follow_settings():
    api = create_api_limiter()
    auth = create_auth_limiter()

    assert api.max_requests == 100
    assert auth.max_requests == 50
    assert api.window_seconds == auth.window_seconds == 15 * 60


def test_factories_return_none_when_disabled():
    settings = dict(SECURITY_SETTINGS, RATE_LIMIT_ENABLED=False)

    assert create_api_limiter(settings) is None
    assert create_auth_limiter(settings) is None
