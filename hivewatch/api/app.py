"""FastAPI application factory."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hivewatch.api.routes import health, players, stats
from hivewatch.api.runtime import AppRuntime
from hivewatch.api.startup_state import StartupPhase, get_startup_state
from hivewatch.config import VERSION
from hivewatch.utilities.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    from hivewatch.api.runtime import build_runtime
    from hivewatch.database import init_db

    startup = get_startup_state()

    # Startup
    setup_logging()
    logger.info("Starting hivewatch %s...", VERSION)

    runtime: AppRuntime | None = app.state.runtime
    if runtime is None:
        startup.set_phase(StartupPhase.OPENING_DATABASE)
        try:
            init_db()
            runtime = build_runtime()
            app.state.runtime = runtime

            startup.set_phase(StartupPhase.RESTORING_STATE)
            loaded = runtime.engine.load_from(runtime.store, time.time())
        except Exception as e:
            startup.fail(str(e))
            logger.exception("[STARTUP] Could not restore state: %s", e)
            raise
        logger.info("[STARTUP] Restored %d tracked players", loaded)
    startup.record_restore(len(runtime.engine))

    startup.scheduler_enabled = app.state.start_scheduler
    if app.state.start_scheduler:
        startup.set_phase(StartupPhase.STARTING_SCHEDULER)
        try:
            if not runtime.scheduler.start():
                startup.set_error("poll scheduler did not start")
        except Exception as e:
            startup.set_error(str(e))
            logger.warning("Failed to start poll scheduler: %s", e)
    else:
        logger.info("Poll scheduler disabled")

    startup.set_phase(StartupPhase.READY)
    logger.info("hivewatch ready")

    yield

    # Shutdown
    startup.set_phase(StartupPhase.SHUTTING_DOWN)
    logger.info("Shutting down hivewatch...")
    runtime.scheduler.stop()
    try:
        runtime.engine.save_to(runtime.store)
    except Exception as e:
        logger.error("Failed to persist state on shutdown: %s", e)
    runtime.close()
    logger.info("hivewatch stopped")


def create_app(runtime: AppRuntime | None = None, start_scheduler: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        runtime: Pre-built runtime. When given, state is not reloaded from
            the database (tests inject one with fakes).
        start_scheduler: Whether the lifespan starts the poll loop
    """
    app = FastAPI(
        title="hivewatch API",
        description="Hive player stats tracker",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.state.start_scheduler = start_scheduler

    app.include_router(health.router, tags=["Health"])
    app.include_router(players.router, prefix="/api/v1", tags=["Players"])
    app.include_router(stats.router, prefix="/api/v1/stats", tags=["Stats"])

    return app


app = create_app()
