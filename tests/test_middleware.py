"""Tests for the rate limiter and origin checks."""

import pytest

from sheetdeck_analytics.middleware import RateLimiter, is_origin_allowed


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    """Test fixed-window rate limiting."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter(3, clock=FakeClock())
        assert [limiter.is_allowed("1.1.1.1") for _ in range(4)] == [True, True, True, False]

    def test_clients_are_independent(self):
        limiter = RateLimiter(1, clock=FakeClock())
        assert limiter.is_allowed("1.1.1.1")
        assert not limiter.is_allowed("1.1.1.1")
        assert limiter.is_allowed("2.2.2.2")

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(1, window_sec=60, clock=clock)
        assert limiter.is_allowed("1.1.1.1")
        assert not limiter.is_allowed("1.1.1.1")

        clock.now += 60
        assert limiter.is_allowed("1.1.1.1")

    def test_expired_clients_are_swept(self, monkeypatch):
        monkeypatch.setattr("sheetdeck_analytics.middleware.CLEANUP_THRESHOLD", 2)
        clock = FakeClock()
        limiter = RateLimiter(5, window_sec=10, clock=clock)
        limiter.is_allowed("a")
        limiter.is_allowed("b")

        clock.now += 10
        limiter.is_allowed("c")

        assert set(limiter._clients) == {"c"}


class TestOriginAllowed:
    """Test origin comparison."""

    @pytest.mark.parametrize("origin", [
        "https://sheetdeck.dev",
        "https://SHEETDECK.dev",
        "https://sheetdeck.dev/sheets/git?x=1",
    ])
    def test_allowed(self, origin):
        assert is_origin_allowed(origin, ["https://sheetdeck.dev"])

    @pytest.mark.parametrize("origin", [
        "http://sheetdeck.dev",
        "https://evil.example",
        "https://sheetdeck.dev:8443",
        "sheetdeck.dev",
        "",
    ])
    def test_rejected(self, origin):
        assert not is_origin_allowed(origin, ["https://sheetdeck.dev"])

    def test_empty_allow_list(self):
        assert not is_origin_allowed("https://sheetdeck.dev", [])
