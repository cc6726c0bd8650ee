"""Winstreak milestone alerts (every 50 wins)."""

import logging

from hivewatch.core.types import MilestoneAlert

logger = logging.getLogger(__name__)

MILESTONE_STEP = 50


class MilestoneMonitor:
    """Emits one alert per distinct multiple of the step per climb.

    The last alerted value only grows, except that it drops back to zero
    whenever the streak falls below it so a fresh climb alerts again.
    """

    def __init__(self, step: int = MILESTONE_STEP):
        self._step = step
        self._last_alerted: dict[str, dict[str, int]] = {}

    def check(
        self,
        player_id: str,
        family: str,
        new_streak: int,
        now: float = 0.0,
        display_name: str | None = None,
    ) -> MilestoneAlert | None:
        """Alert when the streak reaches a new multiple of the step.

        display_name is what the alert shows; the roster key is used when it
        is missing.
        """
        alerts = self._last_alerted.setdefault(player_id, {})
        last = alerts.get(family, 0)

        if new_streak < last:
            logger.debug(
                "[MILESTONE] %s %s streak %d fell below %d, re-arming",
                player_id,
                family,
                new_streak,
                last,
            )
            last = alerts[family] = 0

        if new_streak > 0 and new_streak % self._step == 0 and new_streak > last:
            alerts[family] = new_streak
            logger.info("[MILESTONE] %s reached %d wins in a row in %s", player_id, new_streak, family)
            return MilestoneAlert(
                player=display_name or player_id,
                family=family,
                streak=new_streak,
                occurred_at=now,
            )

        return None

    def rearm(self, player_id: str, family: str) -> None:
        """Forget the last alert so the next multiple alerts again."""
        self._last_alerted.get(player_id, {}).pop(family, None)

    def last_alerted(self, player_id: str, family: str) -> int:
        return self._last_alerted.get(player_id, {}).get(family, 0)

    def for_player(self, player_id: str) -> dict[str, int]:
        return dict(self._last_alerted.get(player_id, {}))

    def load_player(self, player_id: str, alerts: dict[str, int]) -> None:
        self._last_alerted[player_id] = dict(alerts)

    def forget(self, player_id: str) -> None:
        self._last_alerted.pop(player_id, None)
