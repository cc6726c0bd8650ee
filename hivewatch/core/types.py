"""Core data types for hivewatch.

All data structures are dataclasses with attribute access.
Timestamps are epoch seconds (float) throughout the engine.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime

# Game family that carries the variant classifier (BedWars has one API
# bucket but several sub-modes).
AMBIGUOUS_FAMILY = "bed"

GAMEMODE_NAMES = {
    "bed": "BedWars",
    "dr": "Death Run",
    "hide": "Hide and Seek",
    "party": "Block Party",
    "drop": "Block Drop",
    "ground": "Ground Wars",
    "sky": "Sky Wars",
    "ctf": "Capture The Flag",
    "bridge": "The Bridge",
    "murder": "Murder Mystery",
    "sg": "Survival Games",
}


def family_display_name(family: str) -> str:
    """Human-readable name for a game family ('bed' -> 'BedWars')."""
    return GAMEMODE_NAMES.get(family, family.upper())


def normalize_username(username: str) -> str:
    """Roster key for a player name (case-insensitive)."""
    return username.strip().lower()


@dataclass(frozen=True)
class StatRecord:
    """Cumulative (or per-game) counters for one game family."""

    played: int = 0
    victories: int = 0
    deaths: int = 0
    kills: int = 0
    final_kills: int = 0
    beds_destroyed: int = 0
    coins: int = 0
    murders: int = 0
    murderer_eliminations: int = 0
    goals: int = 0

    @classmethod
    def from_dict(cls, data: dict | None) -> "StatRecord":
        """Build from a provider/persisted dict, coercing junk to 0."""
        if not isinstance(data, dict):
            return cls()
        values = {}
        for f in fields(cls):
            raw = data.get(f.name)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                values[f.name] = 0
            else:
                values[f.name] = max(0, int(raw))
        return cls(**values)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


# Fields split equally across the games of one diff batch
COUNTED_FIELDS = (
    "kills",
    "final_kills",
    "beds_destroyed",
    "deaths",
    "coins",
    "murders",
    "murderer_eliminations",
    "goals",
)

StatSnapshot = dict[str, StatRecord]


def snapshot_from_dict(data: dict | None) -> StatSnapshot:
    """Decode a {family: {...}} mapping into a StatSnapshot."""
    if not isinstance(data, dict):
        return {}
    return {
        str(family): StatRecord.from_dict(stats)
        for family, stats in data.items()
        if isinstance(stats, dict)
    }


def snapshot_to_dict(snapshot: StatSnapshot) -> dict[str, dict[str, int]]:
    return {family: record.to_dict() for family, record in snapshot.items()}


@dataclass(frozen=True)
class PlayerProfile:
    """Provider answer for one player: canonical name plus stats."""

    username: str
    snapshot: StatSnapshot


def total_games(snapshot: StatSnapshot) -> int:
    return sum(record.played for record in snapshot.values())


def total_victories(snapshot: StatSnapshot) -> int:
    return sum(record.victories for record in snapshot.values())


@dataclass(frozen=True)
class MatchEvent:
    """One inferred game, derived from a snapshot diff."""

    player_id: str
    family: str
    is_win: bool
    stats_delta: StatRecord
    occurred_at: float


@dataclass(frozen=True)
class VariantSample:
    """One game's shape as remembered by the variant classifier."""

    kills: int
    final_kills: int
    beds_destroyed: int
    deaths: int
    timestamp: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DailyCounter:
    """Kills and deaths accumulated since `reset_date`."""

    kills: int = 0
    deaths: int = 0
    reset_date: date | None = None

    def to_dict(self) -> dict:
        return {
            "kills": self.kills,
            "deaths": self.deaths,
            "reset_date": self.reset_date.isoformat() if self.reset_date else None,
        }


@dataclass(frozen=True)
class DailyKD:
    """Today's kill/death ratio for one player and family."""

    ratio: float
    kills: int
    deaths: int

    def formatted(self) -> str:
        return f"{self.ratio:.2f} ({self.kills}K/{self.deaths}D)"


@dataclass
class TrackedPlayer:
    """Roster entry.

    `expires_at` is None for permanent tracking; temporary players are
    removed by the scheduler once it passes.
    """

    username: str
    key: str
    added_at: float
    expires_at: float | None = None
    last_stats: StatSnapshot = field(default_factory=dict)
    last_match_at: float | None = None
    last_win_at: float | None = None
    inactive_last_check: float | None = None

    @property
    def is_temporary(self) -> bool:
        return self.expires_at is not None

    def activity_reference(self) -> float:
        """Timestamp the active/inactive bucketing is measured from."""
        if self.last_match_at is not None:
            return self.last_match_at
        return self.added_at


# =============================================================================
# NOTIFICATION RECORDS
# =============================================================================


@dataclass(frozen=True)
class GameNotification:
    """Structured record handed to the notification layer per MatchEvent."""

    player: str
    family: str
    family_display: str
    is_win: bool
    stats: StatRecord
    streak: int
    occurred_at: float
    variant_percentages: dict[str, int] | None = None
    variant_summary: str | None = None
    eta_seconds: int | None = None
    daily_kd: DailyKD | None = None

    @property
    def result(self) -> str:
        return "WIN" if self.is_win else "LOSS"

    def to_dict(self) -> dict:
        return {
            "type": "game",
            "player": self.player,
            "family": self.family,
            "family_display": self.family_display,
            "result": self.result,
            "stats": self.stats.to_dict(),
            "streak": self.streak,
            "occurred_at": datetime.fromtimestamp(self.occurred_at).isoformat(),
            "variant_percentages": self.variant_percentages,
            "variant_summary": self.variant_summary,
            "eta_seconds": self.eta_seconds,
            "daily_kd": self.daily_kd.formatted() if self.daily_kd else None,
        }


@dataclass(frozen=True)
class MilestoneAlert:
    """A streak crossed a new multiple of the milestone step."""

    player: str
    family: str
    streak: int
    occurred_at: float

    def to_dict(self) -> dict:
        return {
            "type": "milestone",
            "player": self.player,
            "family": self.family,
            "family_display": family_display_name(self.family),
            "streak": self.streak,
            "occurred_at": datetime.fromtimestamp(self.occurred_at).isoformat(),
        }


@dataclass(frozen=True)
class ExpiryNotice:
    """Temporary tracking for a player ran out."""

    player: str
    expired_at: float

    def to_dict(self) -> dict:
        return {
            "type": "expiry",
            "player": self.player,
            "expired_at": datetime.fromtimestamp(self.expired_at).isoformat(),
        }


NotificationRecord = GameNotification | MilestoneAlert | ExpiryNotice


@dataclass
class TickResult:
    """Everything one player's snapshot apply produced."""

    player: str
    events: list[MatchEvent] = field(default_factory=list)
    notifications: list[GameNotification] = field(default_factory=list)
    milestones: list[MilestoneAlert] = field(default_factory=list)

    @property
    def has_new_match(self) -> bool:
        return bool(self.events)

    @property
    def records(self) -> list[NotificationRecord]:
        return [*self.notifications, *self.milestones]
