"""Snapshot diffing - turns cumulative counters into per-game events.

The stats API only exposes lifetime totals. Between two polls a player may
have finished several games, so each family's delta is split equally across
the games played in the interval:

- games = new.played - old.played (no games, or a counter regression,
  yields nothing)
- wins are assigned first, losses after (the true order is unrecoverable)
- every counted stat is floor-divided by the game count, so the per-game
  values never add up to more than the real aggregate
"""

import logging

from hivewatch.core.types import COUNTED_FIELDS, MatchEvent, StatRecord, StatSnapshot

logger = logging.getLogger(__name__)

_EMPTY = StatRecord()


def per_game_delta(old: StatRecord, new: StatRecord, games: int, is_win: bool) -> StatRecord:
    """Equal-split approximation of one game's stats within a batch."""
    values = {
        name: max(0, (getattr(new, name) - getattr(old, name)) // games)
        for name in COUNTED_FIELDS
    }
    return StatRecord(played=1, victories=1 if is_win else 0, **values)


def diff_family(
    player_id: str,
    family: str,
    old: StatRecord,
    new: StatRecord,
    now: float,
) -> list[MatchEvent]:
    """Events for a single game family."""
    games = new.played - old.played
    if games <= 0:
        return []

    victories = min(max(new.victories - old.victories, 0), games)
    win_delta = per_game_delta(old, new, games, is_win=True)
    loss_delta = per_game_delta(old, new, games, is_win=False)

    logger.debug(
        "[DIFF] %s played %d %s game(s), won %d", player_id, games, family, victories
    )

    return [
        MatchEvent(
            player_id=player_id,
            family=family,
            is_win=index < victories,
            stats_delta=win_delta if index < victories else loss_delta,
            occurred_at=now,
        )
        for index in range(games)
    ]


def diff_snapshots(
    player_id: str,
    old: StatSnapshot,
    new: StatSnapshot,
    now: float,
) -> list[MatchEvent]:
    """Compare two snapshots and emit the inferred games in order.

    Args:
        player_id: Roster key of the player
        old: Snapshot from the previous successful fetch
        new: Freshly fetched snapshot
        now: Timestamp stamped on every event of the batch

    Returns:
        Events grouped by family (in the order families appear in `new`),
        wins before losses within a family
    """
    events: list[MatchEvent] = []
    for family, new_record in new.items():
        old_record = old.get(family, _EMPTY)
        events.extend(diff_family(player_id, family, old_record, new_record, now))
    return events
