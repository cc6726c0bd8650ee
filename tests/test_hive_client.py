"""Tests for the Hive HTTP client, rate limiter and provider."""

import logging

import httpx
import pytest

from hivewatch.core import NotFoundError, TransientFetchError
from hivewatch.providers.hive import HiveClient, HiveProvider, RateLimiter, extract_game_stats

PAYLOAD = {
    "main": {"username_cc": "Steve", "username": "steve", "xp": 1000},
    "bed": {"played": 12, "victories": 6, "kills": 48, "final_kills": 10},
    "sky": {"played": 3, "victories": 1, "kills": 2},
    "murder": {"played": 0},
}


class FakeTime:
    """Monotonic clock whose sleep() just moves time forward."""

    def __init__(self):
        self.now = 1000.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _client(handler, **kwargs) -> HiveClient:
    return HiveClient(transport=httpx.MockTransport(handler), **kwargs)


# =============================================================================
# RATE LIMITER
# =============================================================================


class TestRateLimiter:
    """Reservoir plus concurrency ceiling."""

    @pytest.fixture
    def fake_time(self):
        return FakeTime()

    def test_reservoir_consumed(self, fake_time):
        limiter = RateLimiter(reservoir=3, clock=fake_time.clock, sleep=fake_time.sleep)

        with limiter.slot():
            assert limiter.in_flight == 1
        assert limiter.in_flight == 0
        assert limiter.remaining == 2

    def test_blocks_until_refresh(self, fake_time):
        limiter = RateLimiter(
            reservoir=2, refresh_seconds=60, clock=fake_time.clock, sleep=fake_time.sleep
        )
        for _ in range(2):
            with limiter.slot():
                pass
        fake_time.now += 20

        with limiter.slot():
            pass

        assert fake_time.sleeps == [40.0]
        assert limiter.stats.preemptive_waits == 1
        assert limiter.remaining == 1

    def test_refills_after_period(self, fake_time):
        limiter = RateLimiter(reservoir=2, clock=fake_time.clock, sleep=fake_time.sleep)
        for _ in range(2):
            with limiter.slot():
                pass
        fake_time.now += 61

        assert limiter.remaining == 2
        assert fake_time.sleeps == []

    def test_slot_released_on_error(self, fake_time):
        limiter = RateLimiter(max_concurrent=1, clock=fake_time.clock, sleep=fake_time.sleep)

        with pytest.raises(RuntimeError):
            with limiter.slot():
                raise RuntimeError("boom")

        with limiter.slot():
            assert limiter.in_flight == 1

    def test_status(self, fake_time):
        limiter = RateLimiter(clock=fake_time.clock, sleep=fake_time.sleep)
        limiter.record_reactive_wait(30)

        status = limiter.status()

        assert status["reservoir"] == 120
        assert status["max_concurrent"] == 10
        assert status["reactive_waits"] == 1
        assert status["is_rate_limited"] is True


# =============================================================================
# CLIENT
# =============================================================================


class TestHiveClient:
    """Status code mapping and rate limit headers."""

    def test_success(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["agent"] = request.headers["user-agent"]
            return httpx.Response(200, json=PAYLOAD)

        data = _client(handler).get_all_stats("Steve")

        assert data["bed"]["played"] == 12
        assert seen == {"path": "/v0/game/all/all/Steve", "agent": "PersonalTracker"}

    def test_not_found(self):
        client = _client(lambda request: httpx.Response(404))

        with pytest.raises(NotFoundError):
            client.get_all_stats("ghost")

    def test_rate_limited_with_retry_after(self):
        client = _client(lambda request: httpx.Response(429, headers={"retry-after": "30"}))

        with pytest.raises(TransientFetchError) as exc_info:
            client.get_all_stats("steve")

        assert exc_info.value.retry_after == 30
        assert client.rate_limiter.stats.reactive_waits == 1

    def test_rate_limited_default_retry(self):
        client = _client(lambda request: httpx.Response(429))

        with pytest.raises(TransientFetchError) as exc_info:
            client.get_all_stats("steve")

        assert exc_info.value.retry_after == 60

    def test_server_error(self):
        client = _client(lambda request: httpx.Response(503))

        with pytest.raises(TransientFetchError):
            client.get_all_stats("steve")

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientFetchError):
            _client(handler).get_all_stats("steve")

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(TransientFetchError):
            _client(handler).get_all_stats("steve")

    def test_invalid_json(self):
        client = _client(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(TransientFetchError):
            client.get_all_stats("steve")

    def test_low_remaining_warns(self, caplog):
        client = _client(
            lambda request: httpx.Response(
                200,
                json=PAYLOAD,
                headers={"x-ratelimit-remaining": "5", "x-ratelimit-limit": "120"},
            )
        )

        with caplog.at_level(logging.WARNING, logger="hivewatch.providers.hive.client"):
            client.get_all_stats("steve")

        assert "5/120 requests remaining" in caplog.text
        assert client.rate_limiter.stats.last_remaining_header == 5

    def test_requests_counted(self):
        client = _client(lambda request: httpx.Response(200, json=PAYLOAD))
        client.get_all_stats("steve")
        client.get_all_stats("alex")

        assert client.rate_limiter.stats.total_requests == 2
        assert client.rate_limiter.in_flight == 0


# =============================================================================
# PROVIDER
# =============================================================================


class TestHiveProvider:
    """Payload normalization."""

    def test_extract_skips_main(self):
        snapshot = extract_game_stats(PAYLOAD)

        assert set(snapshot) == {"bed", "sky", "murder"}
        assert snapshot["bed"].final_kills == 10
        assert snapshot["murder"].played == 0

    def test_fetch_snapshot(self):
        provider = HiveProvider(_client(lambda request: httpx.Response(200, json=PAYLOAD)))
        assert provider.fetch_snapshot("steve")["sky"].kills == 2

    def test_fetch_profile_uses_display_name(self):
        provider = HiveProvider(_client(lambda request: httpx.Response(200, json=PAYLOAD)))

        profile = provider.fetch_profile("steve")

        assert profile.username == "Steve"
        assert profile.snapshot["bed"].played == 12

    def test_fetch_profile_without_main_is_not_found(self):
        payload = {"bed": {"played": 1}}
        provider = HiveProvider(_client(lambda request: httpx.Response(200, json=payload)))

        with pytest.raises(NotFoundError):
            provider.fetch_profile("steve")

    def test_name(self):
        assert HiveProvider(_client(lambda request: httpx.Response(200, json={}))).name == "hive"
