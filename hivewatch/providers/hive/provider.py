"""The Hive stats provider.

Fetches data from the Hive API and normalizes it into StatSnapshot
dataclasses.
"""

import logging

from hivewatch.core import NotFoundError, PlayerProfile, StatRecord, StatSnapshot, StatsProvider
from hivewatch.providers.hive.client import HiveClient

logger = logging.getLogger(__name__)


def is_game_data(data) -> bool:
    """Per-game objects are the ones carrying `played` or `victories`."""
    return isinstance(data, dict) and ("played" in data or "victories" in data)


def extract_game_stats(payload: dict) -> StatSnapshot:
    """Pick the per-game objects out of a /game/all/all response.

    The `main` profile and any non-game entries are skipped; missing
    counters default to 0.
    """
    return {
        family: StatRecord.from_dict(data)
        for family, data in payload.items()
        if is_game_data(data)
    }


class HiveProvider(StatsProvider):
    """The Hive implementation of StatsProvider."""

    def __init__(self, client: HiveClient | None = None):
        self._client = client or HiveClient()

    @property
    def name(self) -> str:
        return "hive"

    @property
    def client(self) -> HiveClient:
        return self._client

    def fetch_snapshot(self, username: str) -> StatSnapshot:
        return extract_game_stats(self._client.get_all_stats(username))

    def fetch_profile(self, username: str) -> PlayerProfile:
        """Fetch stats and the canonical username.

        Raises:
            NotFoundError: 404, or a response without a `main` profile
        """
        payload = self._client.get_all_stats(username)
        main = payload.get("main")
        if not isinstance(main, dict) or not main:
            logger.info("[HIVE] No profile for %s, treating as not found", username)
            raise NotFoundError(username)

        display = main.get("username_cc") or main.get("username") or payload.get("username")
        if not isinstance(display, str) or not display.strip():
            display = username
        return PlayerProfile(username=display, snapshot=extract_game_stats(payload))

    def close(self) -> None:
        self._client.close()
