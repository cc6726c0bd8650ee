"""Per-player, per-family winstreak tracking."""

from hivewatch.core.types import MatchEvent


class StreakTracker:
    """Consecutive-win counter per (player, family).

    A win adds one, any loss resets to zero. Families are independent.
    """

    def __init__(self) -> None:
        self._streaks: dict[str, dict[str, int]] = {}

    def apply(self, event: MatchEvent) -> int:
        """Update the streak for the event's family and return the new value."""
        family_streaks = self._streaks.setdefault(event.player_id, {})
        if event.is_win:
            family_streaks[event.family] = family_streaks.get(event.family, 0) + 1
        else:
            family_streaks[event.family] = 0
        return family_streaks[event.family]

    def get(self, player_id: str, family: str) -> int:
        return self._streaks.get(player_id, {}).get(family, 0)

    def set(self, player_id: str, family: str, value: int) -> None:
        """Manually override a streak (e.g. after a missed poll window)."""
        if value < 0:
            raise ValueError("Streak cannot be negative")
        self._streaks.setdefault(player_id, {})[family] = value

    def for_player(self, player_id: str) -> dict[str, int]:
        return dict(self._streaks.get(player_id, {}))

    def load_player(self, player_id: str, streaks: dict[str, int]) -> None:
        self._streaks[player_id] = dict(streaks)

    def forget(self, player_id: str) -> None:
        self._streaks.pop(player_id, None)
