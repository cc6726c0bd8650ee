"""Roster API endpoints."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, status

from hivewatch.api.models import (
    FamilyDetail,
    PlayerCreate,
    PlayerDetailResponse,
    PlayerListResponse,
    PlayerResponse,
    RosterActionResponse,
    StreakUpdate,
    TemporaryPlayerCreate,
)
from hivewatch.api.runtime import AppRuntime, get_runtime
from hivewatch.core import family_display_name
from hivewatch.services.roster_service import RosterResult

logger = logging.getLogger(__name__)

router = APIRouter()

# Roster result status -> HTTP status for failures
_ERROR_CODES = {
    "invalid": status.HTTP_400_BAD_REQUEST,
    "already_tracked": status.HTTP_409_CONFLICT,
    "limit_reached": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
    "not_tracked": status.HTTP_404_NOT_FOUND,
    "fetch_failed": status.HTTP_502_BAD_GATEWAY,
}


def _to_response(result: RosterResult) -> RosterActionResponse:
    if not result.success:
        raise HTTPException(
            status_code=_ERROR_CODES.get(result.status, status.HTTP_400_BAD_REQUEST),
            detail=result.message,
        )
    return RosterActionResponse(
        status=result.status,
        message=result.message,
        username=result.player.username if result.player else None,
    )


@router.get("/players", response_model=PlayerListResponse)
def list_players(runtime: AppRuntime = Depends(get_runtime)):
    """List tracked players, permanent first."""
    summaries = runtime.roster.list_players()
    return PlayerListResponse(
        players=[PlayerResponse.model_validate(s) for s in summaries],
        count=len(summaries),
        max_players=runtime.roster.max_players,
    )


@router.post(
    "/players",
    response_model=RosterActionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_player(body: PlayerCreate, runtime: AppRuntime = Depends(get_runtime)):
    """Track a player permanently."""
    return _to_response(runtime.roster.add_player(body.username))


@router.post(
    "/players/temporary",
    response_model=RosterActionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_temporary_player(body: TemporaryPlayerCreate, runtime: AppRuntime = Depends(get_runtime)):
    """Track a player for 1, 3 or 7 days."""
    return _to_response(runtime.roster.add_temporary_player(body.username, body.duration))


@router.get("/players/{username}", response_model=PlayerDetailResponse)
def get_player(username: str, runtime: AppRuntime = Depends(get_runtime)):
    """Per-mode streaks, forecasts and daily K/D of one player."""
    engine = runtime.engine
    now = time.time()
    with engine.lock:
        player = engine.get_player(username)
        if player is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{username} is not currently being tracked",
            )
        families = []
        for family, record in player.last_stats.items():
            kd = engine.daily_stats.kd(player.key, family)
            families.append(
                FamilyDetail(
                    family=family,
                    display_name=family_display_name(family),
                    played=record.played,
                    victories=record.victories,
                    streak=engine.streaks.get(player.key, family),
                    last_milestone=engine.milestones.last_alerted(player.key, family),
                    next_match_eta=engine.forecaster.predict(player.key, family, now),
                    daily_kd=kd.formatted() if kd else None,
                )
            )
        averages = engine.classifier.history_averages(player.key)

    return PlayerDetailResponse(
        username=player.username,
        key=player.key,
        temporary=player.is_temporary,
        expires_at=player.expires_at,
        last_match_at=player.last_match_at,
        last_win_at=player.last_win_at,
        families=families,
        variant_averages={name: round(value, 2) for name, value in averages.items()},
    )


@router.delete("/players/{username}", response_model=RosterActionResponse)
def remove_player(username: str, runtime: AppRuntime = Depends(get_runtime)):
    """Stop tracking a player and drop all of their state."""
    return _to_response(runtime.roster.remove_player(username))


@router.put("/players/{username}/streaks/{family}", response_model=RosterActionResponse)
def set_streak(
    username: str,
    family: str,
    body: StreakUpdate,
    runtime: AppRuntime = Depends(get_runtime),
):
    """Manually set a player's winstreak in one game mode."""
    return _to_response(runtime.roster.set_streak(username, family, body.value))
