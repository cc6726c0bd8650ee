"""Tracking engine - roster records plus the per-player inference state.

The engine owns every per-player slice (streaks, match windows, variant
history, milestones, daily counters) and the roster record itself. Every
mutation goes through the engine lock, so the poll scheduler and the HTTP
API can both edit the roster.

apply_snapshot() is the single state transition for a fetch result:

    diff -> match window (once per family) -> per event: streak, variant
    classification (bed only), milestone, daily K/D -> roster timestamps ->
    snapshot replacement

It either completes or leaves the player exactly as it was.
"""

import logging
import threading
from datetime import date, datetime
from zoneinfo import ZoneInfo

from hivewatch.consumers.classifier import VariantClassifier, format_percentages
from hivewatch.consumers.daily_stats import DailyStatsTracker
from hivewatch.consumers.differ import diff_snapshots
from hivewatch.consumers.forecaster import QueueForecaster
from hivewatch.consumers.milestones import MilestoneMonitor
from hivewatch.consumers.streaks import StreakTracker
from hivewatch.core.interfaces import StateStore
from hivewatch.core.types import (
    AMBIGUOUS_FAMILY,
    GameNotification,
    StatSnapshot,
    TickResult,
    TrackedPlayer,
    family_display_name,
    normalize_username,
)
from hivewatch.database.state_codec import (
    META_VERSION_KEY,
    PlayerState,
    decode_documents,
    encode_player,
    player_store_key,
    schema_meta,
)
from hivewatch.database.state_store import read_documents, write_documents

logger = logging.getLogger(__name__)


class PlayerAlreadyTrackedError(ValueError):
    """add_player() was called for a key that is already on the roster."""


class TrackingEngine:
    """Roster plus per-player state, behind one re-entrant lock."""

    def __init__(
        self,
        classifier: VariantClassifier | None = None,
        streaks: StreakTracker | None = None,
        forecaster: QueueForecaster | None = None,
        milestones: MilestoneMonitor | None = None,
        daily_stats: DailyStatsTracker | None = None,
        timezone: ZoneInfo | None = None,
    ):
        self.classifier = classifier or VariantClassifier()
        self.streaks = streaks or StreakTracker()
        self.forecaster = forecaster or QueueForecaster()
        self.milestones = milestones or MilestoneMonitor()
        self.daily_stats = daily_stats or DailyStatsTracker()
        self.timezone = timezone or ZoneInfo("Europe/Berlin")

        self._players: dict[str, TrackedPlayer] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def today(self, now: float) -> date:
        """Calendar day of `now` in the daily-stats timezone."""
        return datetime.fromtimestamp(now, tz=self.timezone).date()

    # =========================================================================
    # Roster
    # =========================================================================

    def add_player(
        self,
        username: str,
        snapshot: StatSnapshot,
        now: float,
        expires_at: float | None = None,
    ) -> TrackedPlayer:
        """Start tracking a player with `snapshot` as the diff baseline.

        Raises:
            PlayerAlreadyTrackedError: The player is already on the roster
        """
        key = normalize_username(username)
        with self._lock:
            if key in self._players:
                raise PlayerAlreadyTrackedError(f"{key} is already tracked")
            player = TrackedPlayer(
                username=username.strip(),
                key=key,
                added_at=now,
                expires_at=expires_at,
                last_stats=dict(snapshot),
            )
            self._players[key] = player
            for family in snapshot:
                self.streaks.set(key, family, 0)

        logger.info(
            "[ROSTER] Tracking %s (%s)",
            player.username,
            "temporary" if player.is_temporary else "permanent",
        )
        return player

    def remove_player(self, username: str) -> TrackedPlayer | None:
        """Stop tracking and drop every per-player slice. None if not tracked."""
        key = normalize_username(username)
        with self._lock:
            player = self._players.pop(key, None)
            if player is None:
                return None
            self._forget(key)
        logger.info("[ROSTER] Stopped tracking %s", player.username)
        return player

    def _forget(self, key: str) -> None:
        self.streaks.forget(key)
        self.forecaster.forget(key)
        self.classifier.forget(key)
        self.milestones.forget(key)
        self.daily_stats.forget(key)

    def get_player(self, username: str) -> TrackedPlayer | None:
        with self._lock:
            return self._players.get(normalize_username(username))

    def players(self) -> list[TrackedPlayer]:
        with self._lock:
            return list(self._players.values())

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, username: str) -> bool:
        return normalize_username(username) in self._players

    def expired_players(self, now: float) -> list[TrackedPlayer]:
        with self._lock:
            return [
                p for p in self._players.values() if p.expires_at is not None and p.expires_at <= now
            ]

    def mark_inactive_check(self, key: str, now: float) -> None:
        with self._lock:
            player = self._players.get(key)
            if player is not None:
                player.inactive_last_check = now

    def set_streak(self, username: str, family: str, value: int) -> int:
        """Manual streak override. Also re-arms milestones below the new value.

        Raises:
            KeyError: Player not tracked
            ValueError: Negative value
        """
        key = normalize_username(username)
        with self._lock:
            if key not in self._players:
                raise KeyError(key)
            self.streaks.set(key, family, value)
            if value < self.milestones.last_alerted(key, family):
                self.milestones.rearm(key, family)
        logger.info("[ROSTER] Streak for %s in %s set to %d", key, family, value)
        return value

    def reset_daily_stats(self, now: float) -> int:
        with self._lock:
            return self.daily_stats.reset_all(self.today(now))

    # =========================================================================
    # Snapshot apply
    # =========================================================================

    def apply_snapshot(self, key: str, snapshot: StatSnapshot, now: float) -> TickResult:
        """Diff a fresh snapshot against the stored one and update all state.

        Args:
            key: Roster key
            snapshot: Freshly fetched stats
            now: Timestamp stamped on the resulting events

        Returns:
            TickResult with the events and notification records produced

        Raises:
            KeyError: Player is not tracked (e.g. removed mid-tick)
        """
        with self._lock:
            player = self._players.get(key)
            if player is None:
                raise KeyError(key)

            checkpoint = self.player_state(key)
            try:
                return self._apply(player, snapshot, now)
            except Exception:
                logger.error("[POLL] Apply failed for %s, restoring previous state", key)
                self._restore(checkpoint)
                raise

    def _apply(self, player: TrackedPlayer, snapshot: StatSnapshot, now: float) -> TickResult:
        key = player.key
        events = diff_snapshots(key, player.last_stats, snapshot, now)
        result = TickResult(player=key, events=events)

        if events:
            etas: dict[str, int | None] = {}
            for family in dict.fromkeys(event.family for event in events):
                self.forecaster.record_match(key, family, now)
                etas[family] = self.forecaster.predict(key, family, now)

            today = self.today(now)
            for event in events:
                delta = event.stats_delta
                streak = self.streaks.apply(event)

                percentages = None
                summary = None
                if event.family == AMBIGUOUS_FAMILY:
                    percentages = self.classifier.score_with_history(key, delta, now)
                    summary = format_percentages(percentages)

                milestone = self.milestones.check(
                    key, event.family, streak, now, display_name=player.username
                )
                if milestone is not None:
                    result.milestones.append(milestone)

                daily_kd = None
                if delta.kills > 0 or delta.deaths > 0:
                    self.daily_stats.update(key, event.family, delta.kills, delta.deaths, today)
                    daily_kd = self.daily_stats.kd(key, event.family)

                if event.is_win:
                    player.last_win_at = now

                result.notifications.append(
                    GameNotification(
                        player=player.username,
                        family=event.family,
                        family_display=family_display_name(event.family),
                        is_win=event.is_win,
                        stats=delta,
                        streak=streak,
                        occurred_at=now,
                        variant_percentages=percentages,
                        variant_summary=summary,
                        eta_seconds=etas[event.family],
                        daily_kd=daily_kd,
                    )
                )

            player.last_match_at = now
            logger.info(
                "[POLL] %s: %d new game(s) (%d won)",
                player.username,
                len(events),
                sum(1 for e in events if e.is_win),
            )

        player.last_stats = dict(snapshot)
        return result

    # =========================================================================
    # State export/import
    # =========================================================================

    def player_state(self, key: str) -> PlayerState:
        """Detached copy of every slice held for one player."""
        with self._lock:
            player = self._players[key]
            return PlayerState(
                player=TrackedPlayer(
                    username=player.username,
                    key=player.key,
                    added_at=player.added_at,
                    expires_at=player.expires_at,
                    last_stats=dict(player.last_stats),
                    last_match_at=player.last_match_at,
                    last_win_at=player.last_win_at,
                    inactive_last_check=player.inactive_last_check,
                ),
                streaks=self.streaks.for_player(key),
                match_times=self.forecaster.for_player(key),
                variant_history=self.classifier.history(key),
                milestones=self.milestones.for_player(key),
                daily_stats=self.daily_stats.for_player(key),
            )

    def _restore(self, state: PlayerState) -> None:
        key = state.player.key
        self._players[key] = state.player
        self.streaks.load_player(key, state.streaks)
        self.forecaster.load_player(key, state.match_times)
        self.classifier.load_player(key, state.variant_history)
        self.milestones.load_player(key, state.milestones)
        self.daily_stats.load_player(key, state.daily_stats)

    def export_state(self) -> dict[str, dict]:
        """Store documents for every tracked player plus the schema marker."""
        with self._lock:
            documents = {META_VERSION_KEY: schema_meta()}
            for key in self._players:
                documents[player_store_key(key)] = encode_player(self.player_state(key))
            return documents

    def load_players(self, states: list[PlayerState]) -> int:
        """Replace the roster with decoded player states."""
        with self._lock:
            for key in list(self._players):
                self._forget(key)
            self._players.clear()
            for state in states:
                self._restore(state)
        logger.info("[STATE] Loaded %d tracked player(s)", len(states))
        return len(states)

    def load_state(self, documents: dict[str, dict], now: float) -> int:
        """Replace the roster with a previous export_state() result."""
        return self.load_players(decode_documents(documents, now))

    def save_to(self, store: StateStore) -> None:
        """Write the full state, dropping documents of removed players.

        Export and write happen under one lock hold, so a remove_player()
        from another thread lands either before or after the whole save.
        """
        with self._lock:
            write_documents(store, self.export_state())

    def load_from(self, store: StateStore, now: float) -> int:
        return self.load_state(read_documents(store), now)
