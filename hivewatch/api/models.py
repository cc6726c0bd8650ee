"""Pydantic models for API requests and responses."""

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Players
# =============================================================================


class PlayerCreate(BaseModel):
    """Request body for tracking a player permanently."""

    username: str = Field(min_length=1, max_length=32)


class TemporaryPlayerCreate(BaseModel):
    """Request body for temporary tracking. Unknown durations mean 1d."""

    username: str = Field(min_length=1, max_length=32)
    duration: str = "1d"


class StreakUpdate(BaseModel):
    """Request body for a manual winstreak override."""

    value: int = Field(ge=0)


class PlayerResponse(BaseModel):
    """Roster entry."""

    model_config = ConfigDict(from_attributes=True)

    username: str
    key: str
    temporary: bool
    added_at: float
    expires_at: float | None
    total_games: int
    total_victories: int
    streaks: dict[str, int]
    last_match_at: float | None
    last_match_ago: str | None
    active: bool


class PlayerListResponse(BaseModel):
    players: list[PlayerResponse]
    count: int
    max_players: int


class RosterActionResponse(BaseModel):
    """Result of a roster mutation."""

    status: str
    message: str
    username: str | None = None


class FamilyDetail(BaseModel):
    """Per-game-mode state of one player."""

    family: str
    display_name: str
    played: int
    victories: int
    streak: int
    last_milestone: int
    next_match_eta: int | None
    daily_kd: str | None


class PlayerDetailResponse(BaseModel):
    username: str
    key: str
    temporary: bool
    expires_at: float | None
    last_match_at: float | None
    last_win_at: float | None
    families: list[FamilyDetail]
    variant_averages: dict[str, float]
