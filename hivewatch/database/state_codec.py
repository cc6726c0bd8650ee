"""Versioned encode/decode of per-player engine state.

Each tracked player is stored as one JSON document under `player:<key>`;
`meta:schema_version` records the layout version. Decoding is field by
field: a field that matches no known shape falls back to its empty default
and is logged, without discarding the rest of the player.

Schema history:
    1 - the original bot's single `bot_data.json` document (millisecond
        timestamps, top-level maps keyed by player). Read-only, see
        decode_legacy_document().
    2 - one document per player, epoch-second timestamps.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime

from hivewatch.core.errors import MalformedStateError
from hivewatch.core.types import (
    DailyCounter,
    StatSnapshot,
    TrackedPlayer,
    VariantSample,
    normalize_username,
    snapshot_from_dict,
    snapshot_to_dict,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
META_PREFIX = "meta:"
META_VERSION_KEY = f"{META_PREFIX}schema_version"
PLAYER_PREFIX = "player:"


def player_store_key(key: str) -> str:
    return f"{PLAYER_PREFIX}{key}"


@dataclass
class PlayerState:
    """Everything persisted for one tracked player."""

    player: TrackedPlayer
    streaks: dict[str, int] = field(default_factory=dict)
    match_times: dict[str, list[float]] = field(default_factory=dict)
    variant_history: list[VariantSample] = field(default_factory=list)
    milestones: dict[str, int] = field(default_factory=dict)
    daily_stats: dict[str, DailyCounter] = field(default_factory=dict)


# =============================================================================
# ENCODE
# =============================================================================


def encode_player(state: PlayerState) -> dict:
    player = state.player
    return {
        "username": player.username,
        "key": player.key,
        "added_at": player.added_at,
        "expires_at": player.expires_at,
        "last_stats": snapshot_to_dict(player.last_stats),
        "last_match_at": player.last_match_at,
        "last_win_at": player.last_win_at,
        "inactive_last_check": player.inactive_last_check,
        "streaks": dict(state.streaks),
        "match_times": {family: list(times) for family, times in state.match_times.items()},
        "variant_history": [sample.to_dict() for sample in state.variant_history],
        "milestones": dict(state.milestones),
        "daily_stats": {family: counter.to_dict() for family, counter in state.daily_stats.items()},
    }


def schema_meta() -> dict:
    return {"version": SCHEMA_VERSION}


# =============================================================================
# FIELD DECODERS
# =============================================================================


def _malformed(key: str, field_name: str, detail: str) -> None:
    logger.warning("[STATE] %s, using default", MalformedStateError(key, field_name, detail))


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _decode_timestamp(key: str, field_name: str, raw, scale: float = 1.0) -> float | None:
    """Epoch seconds from a number (divided by scale) or an ISO string."""
    if raw is None:
        return None
    if _is_number(raw):
        return float(raw) / scale
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
    _malformed(key, field_name, f"unreadable timestamp {raw!r}")
    return None


def _decode_counter_map(key: str, field_name: str, raw) -> dict[str, int]:
    """{family: non-negative int}. Pre-family layouts (a bare number) reset to {}."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        _malformed(key, field_name, f"expected per-family mapping, got {type(raw).__name__}")
        return {}
    result = {}
    for family, value in raw.items():
        if _is_number(value) and value >= 0:
            result[str(family)] = int(value)
        else:
            _malformed(key, f"{field_name}.{family}", f"bad counter {value!r}")
    return result


def _decode_match_times(key: str, raw, scale: float = 1.0) -> dict[str, list[float]]:
    """{family: [timestamps]}. A flat list (pre-family layout) resets to {}."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        _malformed(key, "match_times", f"expected per-family mapping, got {type(raw).__name__}")
        return {}
    result = {}
    for family, times in raw.items():
        if isinstance(times, list) and all(_is_number(t) for t in times):
            result[str(family)] = [float(t) / scale for t in times]
        else:
            _malformed(key, f"match_times.{family}", "expected a list of timestamps")
    return result


def _decode_variant_history(key: str, raw) -> list[VariantSample]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        _malformed(key, "variant_history", f"expected list, got {type(raw).__name__}")
        return []
    samples = []
    for entry in raw:
        if not isinstance(entry, dict):
            _malformed(key, "variant_history", f"bad entry {entry!r}")
            continue
        values = [entry.get(name) for name in ("kills", "final_kills", "beds_destroyed", "deaths")]
        timestamp = entry.get("timestamp")
        if not all(_is_number(v) for v in values) or not _is_number(timestamp):
            _malformed(key, "variant_history", f"bad entry {entry!r}")
            continue
        kills, final_kills, beds, deaths = (int(v) for v in values)
        samples.append(VariantSample(kills, final_kills, beds, deaths, float(timestamp)))
    return samples


def _parse_day(raw) -> date | None:
    """ISO date, or the 'd.m.yyyy' form the original bot stored."""
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.strptime(raw, "%d.%m.%Y").date()
    except ValueError:
        return None


def _decode_daily_stats(
    key: str,
    raw,
    date_field: str = "reset_date",
) -> dict[str, DailyCounter]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        _malformed(key, "daily_stats", f"expected per-family mapping, got {type(raw).__name__}")
        return {}
    if "kills" in raw and "deaths" in raw:
        # Flat counters from before daily stats were split per family
        _malformed(key, "daily_stats", "flat counters without family")
        return {}

    result = {}
    for family, entry in raw.items():
        if (
            isinstance(entry, dict)
            and _is_number(entry.get("kills"))
            and _is_number(entry.get("deaths"))
            and _parse_day(entry.get(date_field)) is not None
        ):
            result[str(family)] = DailyCounter(
                kills=max(0, int(entry["kills"])),
                deaths=max(0, int(entry["deaths"])),
                reset_date=_parse_day(entry[date_field]),
            )
        else:
            _malformed(key, f"daily_stats.{family}", f"bad entry {entry!r}")
    return result


def _decode_snapshot(key: str, raw) -> StatSnapshot:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        _malformed(key, "last_stats", f"expected mapping, got {type(raw).__name__}")
        return {}
    return snapshot_from_dict(raw)


# =============================================================================
# DECODE
# =============================================================================


def decode_player(key: str, doc: dict, now: float) -> PlayerState | None:
    """Decode a schema-2 player document.

    Args:
        key: Roster key (store key without the prefix)
        doc: Stored document
        now: Fallback for a missing/unreadable `added_at`

    Returns:
        PlayerState, or None when the document is not a mapping at all
    """
    if not isinstance(doc, dict):
        _malformed(key, "document", f"expected mapping, got {type(doc).__name__}")
        return None

    username = doc.get("username")
    if not isinstance(username, str) or not username.strip():
        username = key

    added_at = _decode_timestamp(key, "added_at", doc.get("added_at"))
    player = TrackedPlayer(
        username=username,
        key=key,
        added_at=added_at if added_at is not None else now,
        expires_at=_decode_timestamp(key, "expires_at", doc.get("expires_at")),
        last_stats=_decode_snapshot(key, doc.get("last_stats")),
        last_match_at=_decode_timestamp(key, "last_match_at", doc.get("last_match_at")),
        last_win_at=_decode_timestamp(key, "last_win_at", doc.get("last_win_at")),
        inactive_last_check=_decode_timestamp(
            key, "inactive_last_check", doc.get("inactive_last_check")
        ),
    )

    return PlayerState(
        player=player,
        streaks=_decode_counter_map(key, "streaks", doc.get("streaks")),
        match_times=_decode_match_times(key, doc.get("match_times")),
        variant_history=_decode_variant_history(key, doc.get("variant_history")),
        milestones=_decode_counter_map(key, "milestones", doc.get("milestones")),
        daily_stats=_decode_daily_stats(key, doc.get("daily_stats")),
    )


def decode_documents(documents: dict[str, dict], now: float) -> list[PlayerState]:
    """Decode every `player:*` document of a store dump.

    A missing or older schema version is logged; fields are still decoded
    individually so whatever is readable survives.
    """
    meta = documents.get(META_VERSION_KEY)
    version = meta.get("version") if isinstance(meta, dict) else None
    if version is None and any(k.startswith(PLAYER_PREFIX) for k in documents):
        logger.warning("[STATE] No schema version recorded, decoding as version %d", SCHEMA_VERSION)
    elif version is not None and version != SCHEMA_VERSION:
        logger.warning(
            "[STATE] Stored schema version %s differs from %d, decoding field by field",
            version,
            SCHEMA_VERSION,
        )

    states = []
    for store_key, doc in documents.items():
        if not store_key.startswith(PLAYER_PREFIX):
            continue
        key = store_key[len(PLAYER_PREFIX) :]
        state = decode_player(key, doc, now)
        if state is not None:
            states.append(state)
    return states


# =============================================================================
# LEGACY (schema 1)
# =============================================================================


def decode_legacy_document(doc: dict, now: float) -> list[PlayerState]:
    """Import the original bot's `bot_data.json` layout.

    Differences from schema 2: timestamps in milliseconds (ISO strings for
    addedAt/expiresAt), per-player data spread over top-level maps, and
    older per-field shapes (bare-number streaks and alerts, flat match time
    arrays, flat daily counters) which reset to empty.

    Subscriber lists, view-only users and message ids have no counterpart
    and are ignored.
    """
    if not isinstance(doc, dict):
        _malformed("bot_data", "document", f"expected mapping, got {type(doc).__name__}")
        return []

    def _section(name: str) -> dict:
        value = doc.get(name)
        return value if isinstance(value, dict) else {}

    winstreaks = _section("winstreaks")
    last_seen = _section("lastSeen")
    last_win = _section("lastWin")
    match_times = _section("matchTimes")
    alerts = _section("hotPlayerAlerts")
    daily = {str(name).lower(): stats for name, stats in _section("dailyStats").items()}

    roster: dict[str, tuple[dict, bool]] = {}
    for name, entry in _section("trackedUsers").items():
        roster[normalize_username(name)] = (entry, False)
    for name, entry in _section("tempUsers").items():
        roster[normalize_username(name)] = (entry, True)

    states = []
    for key, (entry, temporary) in roster.items():
        if not isinstance(entry, dict):
            _malformed(key, "roster_entry", f"expected mapping, got {type(entry).__name__}")
            continue

        username = entry.get("username")
        if not isinstance(username, str) or not username.strip():
            username = key

        added_at = _decode_timestamp(key, "addedAt", entry.get("addedAt"))
        expires_at = _decode_timestamp(key, "expiresAt", entry.get("expiresAt")) if temporary else None
        if temporary and expires_at is None:
            _malformed(key, "expiresAt", "temporary player without expiry, keeping permanently")

        player = TrackedPlayer(
            username=username,
            key=key,
            added_at=added_at if added_at is not None else now,
            expires_at=expires_at,
            last_stats=_decode_snapshot(key, entry.get("lastStats")),
            last_match_at=_decode_timestamp(key, "lastSeen", last_seen.get(key), scale=1000),
            last_win_at=_decode_timestamp(key, "lastWin", last_win.get(key), scale=1000),
        )
        states.append(
            PlayerState(
                player=player,
                streaks=_decode_counter_map(key, "winstreaks", winstreaks.get(key)),
                match_times=_decode_match_times(key, match_times.get(key), scale=1000),
                milestones=_decode_counter_map(key, "hotPlayerAlerts", alerts.get(key)),
                daily_stats=_decode_daily_stats(key, daily.get(key), date_field="lastResetDate"),
            )
        )

    logger.info("[STATE] Imported %d player(s) from legacy document", len(states))
    return states
