"""Runtime wiring - the long-lived objects the API and scheduler share."""

import logging
from dataclasses import dataclass

from fastapi import Request

from hivewatch.config import Config
from hivewatch.consumers.scheduler import PollScheduler
from hivewatch.consumers.tracker import TrackingEngine
from hivewatch.core import NotificationSink, StateStore, StatsProvider
from hivewatch.database.state_store import SQLiteStateStore
from hivewatch.providers import RateLimiter, create_hive_provider, create_rate_limiter
from hivewatch.services.notifications import create_notification_sink
from hivewatch.services.roster_service import RosterService, create_roster_service

logger = logging.getLogger(__name__)


@dataclass
class AppRuntime:
    engine: TrackingEngine
    provider: StatsProvider
    store: StateStore
    sink: NotificationSink
    scheduler: PollScheduler
    roster: RosterService
    rate_limiter: RateLimiter | None = None

    def close(self) -> None:
        for resource in (self.provider, self.sink):
            close = getattr(resource, "close", None)
            if close is not None:
                try:
                    close()
                except Exception as e:
                    logger.warning("Failed to close %s: %s", type(resource).__name__, e)


def build_runtime(
    store: StateStore | None = None,
    provider: StatsProvider | None = None,
    sink: NotificationSink | None = None,
) -> AppRuntime:
    """Wire engine, provider, scheduler and services from Config."""
    settings = Config.poll_settings()
    rate_limiter = None
    if provider is None:
        rate_limiter = create_rate_limiter()
        provider = create_hive_provider(rate_limiter)

    store = store or SQLiteStateStore()
    sink = sink or create_notification_sink(Config.WEBHOOK_URL)
    engine = TrackingEngine(timezone=Config.get_timezone())
    scheduler = PollScheduler(engine, provider, sink=sink, store=store, settings=settings)
    roster = create_roster_service(engine, provider, store)

    return AppRuntime(
        engine=engine,
        provider=provider,
        store=store,
        sink=sink,
        scheduler=scheduler,
        roster=roster,
        rate_limiter=rate_limiter,
    )


def get_runtime(request: Request) -> AppRuntime:
    """FastAPI dependency returning the app's runtime."""
    return request.app.state.runtime
