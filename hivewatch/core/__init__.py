"""Core types, interfaces and errors."""

from hivewatch.core.errors import (
    HiveWatchError,
    MalformedStateError,
    NotFoundError,
    TransientFetchError,
)
from hivewatch.core.interfaces import NotificationSink, StateStore, StatsProvider
from hivewatch.core.types import (
    AMBIGUOUS_FAMILY,
    COUNTED_FIELDS,
    GAMEMODE_NAMES,
    DailyCounter,
    DailyKD,
    ExpiryNotice,
    GameNotification,
    MatchEvent,
    MilestoneAlert,
    NotificationRecord,
    PlayerProfile,
    StatRecord,
    StatSnapshot,
    TickResult,
    TrackedPlayer,
    VariantSample,
    family_display_name,
    normalize_username,
    snapshot_from_dict,
    snapshot_to_dict,
    total_games,
    total_victories,
)

__all__ = [
    "AMBIGUOUS_FAMILY",
    "COUNTED_FIELDS",
    "GAMEMODE_NAMES",
    "DailyCounter",
    "DailyKD",
    "ExpiryNotice",
    "GameNotification",
    "HiveWatchError",
    "MalformedStateError",
    "MatchEvent",
    "MilestoneAlert",
    "NotFoundError",
    "NotificationRecord",
    "NotificationSink",
    "PlayerProfile",
    "StatRecord",
    "StatSnapshot",
    "StateStore",
    "StatsProvider",
    "TickResult",
    "TrackedPlayer",
    "TransientFetchError",
    "VariantSample",
    "family_display_name",
    "normalize_username",
    "snapshot_from_dict",
    "snapshot_to_dict",
    "total_games",
    "total_victories",
]
