"""Health check endpoint."""

from fastapi import APIRouter

from hivewatch.api.startup_state import StartupPhase, get_startup_state
from hivewatch.config import VERSION

router = APIRouter()


@router.get("/health")
def health_check() -> dict:
    """Liveness plus startup progress (phase, restored players, errors)."""
    startup_state = get_startup_state()

    if startup_state.is_ready:
        health = "healthy"
    elif startup_state.phase == StartupPhase.FAILED:
        health = "unhealthy"
    else:
        health = "starting"

    return {
        "status": health,
        "version": VERSION,
        "startup": startup_state.to_dict(),
    }
