"""The Hive stats API."""

from hivewatch.providers.hive.client import HiveClient, RateLimiter, RateLimitStats
from hivewatch.providers.hive.provider import HiveProvider, extract_game_stats

__all__ = ["HiveClient", "HiveProvider", "RateLimitStats", "RateLimiter", "extract_game_stats"]
