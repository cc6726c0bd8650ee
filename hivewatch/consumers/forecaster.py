"""Queue-time forecasting from recent match timestamps.

Each (player, family) keeps the timestamps of its last 10 matches. The next
match is predicted from the gaps between recent matches, weighting newer
gaps more heavily. Predictions outside 30s..20min are suppressed since they
are almost always stale data or a burst of batched games.
"""

import math
from collections import deque
from dataclasses import dataclass

WINDOW_SIZE = 10
RECENT_WINDOW_SECONDS = 30 * 60
MIN_ETA_SECONDS = 30
MAX_ETA_SECONDS = 20 * 60


class QueueForecaster:
    """Predicts seconds until a player's next match in a family."""

    def __init__(
        self,
        window_size: int = WINDOW_SIZE,
        recent_window_seconds: float = RECENT_WINDOW_SECONDS,
        min_eta: int = MIN_ETA_SECONDS,
        max_eta: int = MAX_ETA_SECONDS,
    ):
        self._window_size = window_size
        self._recent_window = recent_window_seconds
        self._min_eta = min_eta
        self._max_eta = max_eta
        self._windows: dict[str, dict[str, deque[float]]] = {}

    def record_match(self, player_id: str, family: str, timestamp: float) -> None:
        """Push a match time, evicting the oldest beyond the window size."""
        families = self._windows.setdefault(player_id, {})
        window = families.get(family)
        if window is None:
            window = families[family] = deque(maxlen=self._window_size)
        window.append(timestamp)

    def recent_matches(self, player_id: str, family: str) -> list[float]:
        return list(self._windows.get(player_id, {}).get(family, ()))

    def predict(self, player_id: str, family: str, now: float) -> int | None:
        """Forecast the next match.

        Args:
            player_id: Roster key
            family: Game family
            now: Current timestamp

        Returns:
            Whole seconds until the predicted match, or None when there is
            too little recent data or the estimate is out of range
        """
        cutoff = now - self._recent_window
        recent = [t for t in self.recent_matches(player_id, family) if t > cutoff]
        if len(recent) < 2:
            return None

        intervals = [later - earlier for earlier, later in zip(recent, recent[1:])]
        weighted_sum = sum(interval * (i + 1) for i, interval in enumerate(intervals))
        total_weight = sum(range(1, len(intervals) + 1))
        average_interval = weighted_sum / total_weight

        predicted_next = recent[-1] + average_interval
        eta = max(0, math.floor(predicted_next - now))

        if self._min_eta <= eta <= self._max_eta:
            return eta
        return None

    def for_player(self, player_id: str) -> dict[str, list[float]]:
        return {family: list(window) for family, window in self._windows.get(player_id, {}).items()}

    def load_player(self, player_id: str, windows: dict[str, list[float]]) -> None:
        self._windows[player_id] = {
            family: deque(times[-self._window_size :], maxlen=self._window_size)
            for family, times in windows.items()
        }

    def forget(self, player_id: str) -> None:
        self._windows.pop(player_id, None)


# =============================================================================
# COUNTDOWN (presentation parity)
# =============================================================================


@dataclass(frozen=True)
class QueueCountdown:
    """Schedule of a ticking "next match in ~Ns" display.

    Pure value object: the presenter owns the timer, this only says what to
    show when. The display counts down in 14-second steps and is marked
    expired once the next step would reach zero; presenters must drop it
    entirely after the initial ETA plus one minute.
    """

    initial_seconds: int
    started_at: float

    TICK_SECONDS = 14
    LIFETIME_BUFFER_SECONDS = 60

    @property
    def expires_at(self) -> float:
        return self.started_at + self.initial_seconds + self.LIFETIME_BUFFER_SECONDS

    def ticks(self) -> list[int]:
        """Remaining-seconds values shown at each tick, in order."""
        values = []
        remaining = self.initial_seconds - self.TICK_SECONDS
        while remaining > 0:
            values.append(remaining)
            remaining -= self.TICK_SECONDS
        return values

    def remaining(self, now: float) -> int | None:
        """Value on display at `now`; None once the countdown has expired."""
        elapsed_ticks = int(max(0.0, now - self.started_at) // self.TICK_SECONDS)
        remaining = self.initial_seconds - elapsed_ticks * self.TICK_SECONDS
        if remaining <= 0 or now >= self.expires_at:
            return None
        return remaining

    def is_expired(self, now: float) -> bool:
        return self.remaining(now) is None
