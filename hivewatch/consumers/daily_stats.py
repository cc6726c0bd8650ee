"""Daily kills/deaths counters for the K/D line on game notifications.

Counters belong to a calendar day in the configured timezone. A counter
from a previous day is zeroed lazily on its next update, and the scheduler
zeroes everything at local midnight.
"""

import logging
from datetime import date

from hivewatch.core.types import DailyCounter, DailyKD

logger = logging.getLogger(__name__)


class DailyStatsTracker:
    """Per (player, family) kills and deaths since local midnight."""

    def __init__(self) -> None:
        self._counters: dict[str, dict[str, DailyCounter]] = {}

    def update(self, player_id: str, family: str, kills: int, deaths: int, today: date) -> DailyCounter:
        families = self._counters.setdefault(player_id, {})
        counter = families.get(family)
        if counter is None:
            counter = families[family] = DailyCounter(reset_date=today)
        elif counter.reset_date != today:
            counter.kills = 0
            counter.deaths = 0
            counter.reset_date = today

        counter.kills += max(0, kills)
        counter.deaths += max(0, deaths)
        return counter

    def kd(self, player_id: str, family: str) -> DailyKD | None:
        """Today's K/D, None when there are no kills yet.

        With zero deaths the ratio is the kill count itself.
        """
        counter = self._counters.get(player_id, {}).get(family)
        if counter is None or counter.kills <= 0:
            return None
        if counter.deaths > 0:
            ratio = round(counter.kills / counter.deaths, 2)
        else:
            ratio = float(counter.kills)
        return DailyKD(ratio=ratio, kills=counter.kills, deaths=counter.deaths)

    def reset_all(self, today: date) -> int:
        """Zero every counter. Returns how many counters were reset."""
        count = 0
        for families in self._counters.values():
            for counter in families.values():
                counter.kills = 0
                counter.deaths = 0
                counter.reset_date = today
                count += 1
        logger.info("[DAILY] Reset %d daily counter(s) for %s", count, today.isoformat())
        return count

    def get(self, player_id: str, family: str) -> DailyCounter | None:
        return self._counters.get(player_id, {}).get(family)

    def for_player(self, player_id: str) -> dict[str, DailyCounter]:
        return {
            family: DailyCounter(c.kills, c.deaths, c.reset_date)
            for family, c in self._counters.get(player_id, {}).items()
        }

    def load_player(self, player_id: str, counters: dict[str, DailyCounter]) -> None:
        self._counters[player_id] = dict(counters)

    def forget(self, player_id: str) -> None:
        self._counters.pop(player_id, None)
