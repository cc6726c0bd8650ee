"""The Hive public stats API HTTP client.

Handles raw HTTP requests with rate limiting. No data transformation -
just fetch and return JSON.

Rate limits:
- 120 requests/minute per client, advertised via x-ratelimit-* headers
- 429 responses carry retry-after (seconds)

Rate limit handling:
- Preemptive: a reservoir of 120 requests refilled every 60s, plus a
  ceiling of 10 requests in flight
- Reactive: a 429 is recorded and surfaced as TransientFetchError; the
  player is simply retried on a later tick (no synchronous retry)
"""

import logging
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import quote

import httpx

from hivewatch.core.errors import NotFoundError, TransientFetchError

logger = logging.getLogger(__name__)

HIVE_BASE_URL = "https://api.playhive.com/v0"
DEFAULT_USER_AGENT = "PersonalTracker"
DEFAULT_RETRY_AFTER_SECONDS = 60.0
LOW_REMAINING_WARNING = 10


@dataclass
class RateLimitStats:
    """Statistics about rate limiting for the status endpoint.

    Tracks both preemptive waits (our limiter) and reactive waits (429 responses).
    """

    total_requests: int = 0
    preemptive_waits: int = 0  # Times the reservoir was empty
    reactive_waits: int = 0  # Times we got a 429 from the API
    total_wait_seconds: float = 0.0
    last_wait_at: datetime | None = None
    last_wait_seconds: float = 0.0
    last_remaining_header: int | None = None
    session_start: datetime = field(default_factory=datetime.now)

    @property
    def is_rate_limited(self) -> bool:
        """True if we've had to wait at all this session."""
        return self.preemptive_waits > 0 or self.reactive_waits > 0

    @property
    def total_waits(self) -> int:
        return self.preemptive_waits + self.reactive_waits

    def to_dict(self) -> dict:
        """Convert to dict for API responses."""
        return {
            "total_requests": self.total_requests,
            "preemptive_waits": self.preemptive_waits,
            "reactive_waits": self.reactive_waits,
            "total_waits": self.total_waits,
            "total_wait_seconds": round(self.total_wait_seconds, 1),
            "last_wait_at": self.last_wait_at.isoformat() if self.last_wait_at else None,
            "last_wait_seconds": round(self.last_wait_seconds, 1),
            "last_remaining_header": self.last_remaining_header,
            "is_rate_limited": self.is_rate_limited,
            "session_start": self.session_start.isoformat(),
        }


class RateLimiter:
    """Reservoir rate limiter with a concurrency ceiling.

    At most `max_concurrent` callers hold a slot at once. Each slot also
    consumes one unit from a reservoir of `reservoir` units that is refilled
    to full every `refresh_seconds`; when it is empty, acquire() blocks
    until the next refill. Never fails - always waits and continues.

    `clock` and `sleep` are injectable so tests can drive time.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        reservoir: int = 120,
        refresh_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._max_concurrent = max_concurrent
        self._reservoir = reservoir
        self._refresh_seconds = refresh_seconds
        self._clock = clock
        self._sleep = sleep

        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._remaining = reservoir
        self._period_start = clock()
        self._in_flight = 0
        self._stats = RateLimitStats()

    @property
    def stats(self) -> RateLimitStats:
        return self._stats

    @property
    def remaining(self) -> int:
        with self._lock:
            self._refill_if_due(self._clock())
            return self._remaining

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def reset_stats(self) -> None:
        self._stats = RateLimitStats()

    def _refill_if_due(self, now: float) -> None:
        elapsed = now - self._period_start
        if elapsed >= self._refresh_seconds:
            periods = int(elapsed // self._refresh_seconds)
            self._period_start += periods * self._refresh_seconds
            self._remaining = self._reservoir

    def acquire(self) -> None:
        """Block until a slot and a reservoir unit are available."""
        self._slots.acquire()
        try:
            self._take_reservoir_unit()
        except BaseException:
            self._slots.release()
            raise
        with self._lock:
            self._in_flight += 1

    def _take_reservoir_unit(self) -> None:
        with self._lock:
            self._stats.total_requests += 1
            waited = False
            while True:
                now = self._clock()
                self._refill_if_due(now)
                if self._remaining > 0:
                    self._remaining -= 1
                    return

                wait_seconds = max(0.0, self._period_start + self._refresh_seconds - now)
                if not waited:
                    waited = True
                    self._stats.preemptive_waits += 1
                    self._stats.last_wait_at = datetime.now()
                    self._stats.last_wait_seconds = wait_seconds
                    logger.info(
                        "[HIVE] Request budget exhausted (%d/%.0fs), waiting %.1fs",
                        self._reservoir,
                        self._refresh_seconds,
                        wait_seconds,
                    )
                self._stats.total_wait_seconds += wait_seconds

                # Release lock while sleeping so other threads can read stats
                self._lock.release()
                try:
                    self._sleep(wait_seconds)
                finally:
                    self._lock.acquire()

    def release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._slots.release()

    @contextmanager
    def slot(self) -> Generator[None, None, None]:
        """Hold a request slot for the duration of the block."""
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def record_reactive_wait(self, wait_seconds: float) -> None:
        """Record a 429 response from the API."""
        with self._lock:
            self._stats.reactive_waits += 1
            self._stats.total_wait_seconds += wait_seconds
            self._stats.last_wait_at = datetime.now()
            self._stats.last_wait_seconds = wait_seconds

    def record_remaining(self, remaining: int) -> None:
        with self._lock:
            self._stats.last_remaining_header = remaining

    def status(self) -> dict:
        return {
            "max_concurrent": self._max_concurrent,
            "reservoir": self._reservoir,
            "refresh_seconds": self._refresh_seconds,
            "remaining": self.remaining,
            "in_flight": self._in_flight,
            **self._stats.to_dict(),
        }


def _parse_int_header(response: httpx.Response, name: str) -> int | None:
    raw = response.headers.get(name)
    if raw is None:
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


class HiveClient:
    """Low-level Hive API client with rate limiting.

    One shared httpx.Client (connection pooling), created lazily. Every
    request goes through the RateLimiter, which the scheduler also sizes
    its worker pool from.
    """

    def __init__(
        self,
        base_url: str = HIVE_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout
        self._rate_limiter = rate_limiter or RateLimiter()
        self._transport = transport
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            with self._client_lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = httpx.Client(
                        base_url=self._base_url,
                        timeout=self._timeout,
                        headers={"User-Agent": self._user_agent},
                        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                        transport=self._transport,
                    )
        return self._client

    def get_all_stats(self, username: str) -> dict:
        """GET /game/all/all/{username}.

        Returns:
            Decoded JSON body (`main` profile plus one object per game)

        Raises:
            NotFoundError: 404
            TransientFetchError: 429, other HTTP errors, network errors,
                undecodable body
        """
        path = f"/game/all/all/{quote(username, safe='')}"

        with self._rate_limiter.slot():
            try:
                response = self._get_client().get(path)
            except httpx.TimeoutException as e:
                logger.warning("[HIVE] Timeout fetching %s", username)
                raise TransientFetchError(f"Timeout fetching {username}") from e
            except httpx.HTTPError as e:
                logger.warning("[HIVE] Request error for %s: %s", username, e)
                raise TransientFetchError(f"Request error for {username}: {e}") from e

        self._check_rate_headers(response)

        if response.status_code == 404:
            logger.info("[HIVE] Player %s not found (404)", username)
            raise NotFoundError(username)

        if response.status_code == 429:
            retry_after = _parse_int_header(response, "retry-after")
            wait_seconds = float(retry_after) if retry_after else DEFAULT_RETRY_AFTER_SECONDS
            self._rate_limiter.record_reactive_wait(wait_seconds)
            logger.warning("[HIVE] Rate limited, retry after %.0fs", wait_seconds)
            raise TransientFetchError(f"Rate limited fetching {username}", retry_after=wait_seconds)

        if response.status_code >= 400:
            logger.warning("[HIVE] HTTP %d for %s", response.status_code, username)
            raise TransientFetchError(f"HTTP {response.status_code} fetching {username}")

        try:
            data = response.json()
        except ValueError as e:
            raise TransientFetchError(f"Invalid JSON for {username}") from e

        if not isinstance(data, dict):
            raise TransientFetchError(f"Unexpected payload for {username}: {type(data).__name__}")
        return data

    def _check_rate_headers(self, response: httpx.Response) -> None:
        remaining = _parse_int_header(response, "x-ratelimit-remaining")
        if remaining is None:
            return
        self._rate_limiter.record_remaining(remaining)
        if remaining < LOW_REMAINING_WARNING:
            limit = _parse_int_header(response, "x-ratelimit-limit") or 120
            logger.warning("[HIVE] Rate limit warning: %d/%d requests remaining", remaining, limit)

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None
