"""Provider layer - player stats providers.

This is the SINGLE place where providers are configured. Everything else
receives a ready StatsProvider through injection.
"""

from hivewatch.config import Config
from hivewatch.providers.hive import (
    HiveClient,
    HiveProvider,
    RateLimiter,
    RateLimitStats,
    extract_game_stats,
)

# =============================================================================
# PROVIDER FACTORY FUNCTIONS
# =============================================================================


def create_rate_limiter() -> RateLimiter:
    """Rate limiter sized from Config (Hive: 10 in flight, 120/min)."""
    return RateLimiter(
        max_concurrent=Config.RATE_LIMIT_MAX_CONCURRENT,
        reservoir=Config.RATE_LIMIT_RESERVOIR,
        refresh_seconds=Config.RATE_LIMIT_REFRESH_SECONDS,
    )


def create_hive_provider(rate_limiter: RateLimiter | None = None) -> HiveProvider:
    """Factory for the Hive provider with settings from Config."""
    client = HiveClient(
        base_url=Config.HIVE_API_BASE_URL,
        user_agent=Config.HIVE_USER_AGENT,
        timeout=Config.HTTP_TIMEOUT_SECONDS,
        rate_limiter=rate_limiter or create_rate_limiter(),
    )
    return HiveProvider(client=client)


__all__ = [
    "HiveClient",
    "HiveProvider",
    "RateLimitStats",
    "RateLimiter",
    "create_hive_provider",
    "create_rate_limiter",
    "extract_game_stats",
]
