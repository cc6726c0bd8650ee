"""Roster service - add, remove and inspect tracked players.

Facade over TrackingEngine for the API layer. Every mutation is written
through to the state store before returning.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from hivewatch.config import Config
from hivewatch.consumers.tracker import TrackingEngine
from hivewatch.core import (
    NotFoundError,
    StateStore,
    StatsProvider,
    TrackedPlayer,
    TransientFetchError,
    family_display_name,
    normalize_username,
    total_games,
    total_victories,
)
from hivewatch.utilities.time_ago import format_time_ago

logger = logging.getLogger(__name__)

TEMPORARY_DURATIONS = {
    "1d": 24 * 60 * 60,
    "3d": 3 * 24 * 60 * 60,
    "7d": 7 * 24 * 60 * 60,
}
DEFAULT_TEMPORARY_DURATION = "1d"

RosterStatus = Literal[
    "added",
    "already_tracked",
    "limit_reached",
    "not_found",
    "fetch_failed",
    "removed",
    "not_tracked",
    "updated",
    "invalid",
]


def parse_duration(duration: str | None) -> tuple[str, int]:
    """Normalize a temporary-tracking duration. Unknown values mean 1 day.

    Returns:
        (duration label, seconds)
    """
    label = (duration or "").strip().lower()
    if label not in TEMPORARY_DURATIONS:
        label = DEFAULT_TEMPORARY_DURATION
    return label, TEMPORARY_DURATIONS[label]


@dataclass
class RosterResult:
    """Outcome of a roster mutation."""

    status: RosterStatus
    message: str
    player: TrackedPlayer | None = None

    @property
    def success(self) -> bool:
        return self.status in ("added", "removed", "updated")


@dataclass
class PlayerSummary:
    """One roster line for listings."""

    username: str
    key: str
    temporary: bool
    added_at: float
    expires_at: float | None
    total_games: int
    total_victories: int
    streaks: dict[str, int] = field(default_factory=dict)
    last_match_at: float | None = None
    last_match_ago: str | None = None
    active: bool = False


class RosterService:
    """Roster operations on top of the tracking engine.

    Usage:
        service = create_roster_service(engine, provider, store)
        result = service.add_player("Steve")
        if not result.success:
            print(result.message)
    """

    def __init__(
        self,
        engine: TrackingEngine,
        provider: StatsProvider,
        store: StateStore | None = None,
        max_players: int = 75,
        inactive_after_seconds: float = 30 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._engine = engine
        self._provider = provider
        self._store = store
        self._max_players = max_players
        self._inactive_after = inactive_after_seconds
        self._clock = clock

    @property
    def max_players(self) -> int:
        return self._max_players

    def _save(self) -> None:
        if self._store is not None:
            self._engine.save_to(self._store)

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_player(self, username: str) -> RosterResult:
        """Track a player permanently."""
        return self._add(username, expires_in=None)

    def add_temporary_player(self, username: str, duration: str | None = None) -> RosterResult:
        """Track a player for 1, 3 or 7 days ('1d', '3d', '7d')."""
        label, seconds = parse_duration(duration)
        result = self._add(username, expires_in=seconds)
        if result.success:
            result.message = f"{result.message} for {label}"
        return result

    def _add(self, username: str, expires_in: int | None) -> RosterResult:
        username = (username or "").strip()
        if not username:
            return RosterResult("invalid", "Username is required")

        if username in self._engine:
            return RosterResult(
                "already_tracked",
                f"{username} is already being tracked",
                self._engine.get_player(username),
            )
        if len(self._engine) >= self._max_players:
            return RosterResult(
                "limit_reached",
                f"Maximum tracking limit reached ({self._max_players} players). "
                "Remove a player first.",
            )

        # Baseline snapshot so the first poll diffs against real totals
        try:
            profile = self._provider.fetch_profile(username)
        except NotFoundError:
            return RosterResult("not_found", f"Could not find player {username}")
        except TransientFetchError as e:
            logger.warning("[ROSTER] Could not fetch %s: %s", username, e)
            return RosterResult("fetch_failed", f"Could not fetch stats for {username}: {e}")

        now = self._clock()
        expires_at = now + expires_in if expires_in is not None else None
        with self._engine.lock:
            # Re-check: the roster may have changed while we were fetching
            if profile.username in self._engine or username in self._engine:
                return RosterResult(
                    "already_tracked",
                    f"{username} is already being tracked",
                    self._engine.get_player(username),
                )
            if len(self._engine) >= self._max_players:
                return RosterResult(
                    "limit_reached",
                    f"Maximum tracking limit reached ({self._max_players} players). "
                    "Remove a player first.",
                )
            display = profile.username
            if normalize_username(display) != normalize_username(username):
                display = username
            player = self._engine.add_player(display, profile.snapshot, now, expires_at=expires_at)
            self._save()

        return RosterResult("added", f"Now tracking {player.username}", player)

    def remove_player(self, username: str) -> RosterResult:
        with self._engine.lock:
            player = self._engine.remove_player(username)
            if player is None:
                return RosterResult("not_tracked", f"{username} is not currently being tracked")
            self._save()
        return RosterResult("removed", f"Stopped tracking {player.username}", player)

    def set_streak(self, username: str, family: str, value: int) -> RosterResult:
        """Manually set a winstreak (e.g. after the bot missed some games)."""
        family = (family or "").strip().lower()
        if not family:
            return RosterResult("invalid", "Game mode is required")
        if value < 0:
            return RosterResult("invalid", "Streak cannot be negative")

        with self._engine.lock:
            player = self._engine.get_player(username)
            if player is None:
                return RosterResult("not_tracked", f"{username} is not currently being tracked")
            self._engine.set_streak(username, family, value)
            self._save()

        return RosterResult(
            "updated",
            f"Set {player.username}'s {family_display_name(family)} winstreak to {value}",
            player,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def list_players(self, now: float | None = None) -> list[PlayerSummary]:
        """Permanent players first, then temporary, each in insertion order."""
        now = self._clock() if now is None else now
        with self._engine.lock:
            players = self._engine.players()
            summaries = [self._summarize(player, now) for player in players]
        return sorted(summaries, key=lambda s: s.temporary)

    def _summarize(self, player: TrackedPlayer, now: float) -> PlayerSummary:
        streaks = {
            family: streak
            for family, streak in self._engine.streaks.for_player(player.key).items()
            if streak > 0
        }
        return PlayerSummary(
            username=player.username,
            key=player.key,
            temporary=player.is_temporary,
            added_at=player.added_at,
            expires_at=player.expires_at,
            total_games=total_games(player.last_stats),
            total_victories=total_victories(player.last_stats),
            streaks=streaks,
            last_match_at=player.last_match_at,
            last_match_ago=(
                format_time_ago(now - player.last_match_at)
                if player.last_match_at is not None
                else None
            ),
            active=now - player.activity_reference() <= self._inactive_after,
        )


def create_roster_service(
    engine: TrackingEngine,
    provider: StatsProvider,
    store: StateStore | None = None,
) -> RosterService:
    """Factory function to create the roster service with Config limits."""
    return RosterService(
        engine,
        provider,
        store,
        max_players=Config.MAX_TRACKED_PLAYERS,
        inactive_after_seconds=Config.INACTIVE_AFTER_SECONDS,
    )
