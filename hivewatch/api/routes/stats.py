"""Stats API endpoints.

Scheduler status and rate limiter statistics in one place.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from hivewatch.api.runtime import AppRuntime, get_runtime
from hivewatch.consumers.scheduler import PollInProgressError

router = APIRouter()


@router.get("")
def get_stats(runtime: AppRuntime = Depends(get_runtime)) -> dict:
    """Current scheduler and rate limit status."""
    return {
        "scheduler": runtime.scheduler.status(),
        "rate_limit": runtime.rate_limiter.status() if runtime.rate_limiter else None,
        "provider": runtime.provider.name,
    }


@router.post("/poll")
def trigger_poll(runtime: AppRuntime = Depends(get_runtime)) -> dict:
    """Run one poll iteration now (manual trigger).

    Returns 409 while the background loop is in the middle of a tick.
    """
    try:
        return runtime.scheduler.run_once(wait=False)
    except PollInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
