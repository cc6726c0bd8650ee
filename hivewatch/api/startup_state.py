"""Startup progress reported by /health.

The lifespan walks through the phases below. /health reports the current
phase plus what the restore found, so a slow or failed start is visible
without reading logs.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class StartupPhase(str, Enum):
    OPENING_DATABASE = "opening_database"
    RESTORING_STATE = "restoring_state"
    STARTING_SCHEDULER = "starting_scheduler"
    READY = "ready"
    FAILED = "failed"
    SHUTTING_DOWN = "shutting_down"


PHASE_MESSAGES = {
    StartupPhase.OPENING_DATABASE: "Opening state database",
    StartupPhase.RESTORING_STATE: "Restoring tracked players",
    StartupPhase.STARTING_SCHEDULER: "Starting poll loop",
    StartupPhase.READY: "Tracking",
    StartupPhase.FAILED: "Startup failed",
    StartupPhase.SHUTTING_DOWN: "Saving state and stopping",
}


@dataclass
class StartupState:
    """Where the lifespan is, and what the state restore produced."""

    phase: StartupPhase = StartupPhase.OPENING_DATABASE
    message: str = PHASE_MESSAGES[StartupPhase.OPENING_DATABASE]
    started_at: datetime = field(default_factory=datetime.now)
    ready_at: datetime | None = None
    players_restored: int | None = None
    scheduler_enabled: bool = True
    error: str | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set_phase(self, phase: StartupPhase, message: str | None = None) -> None:
        with self._lock:
            self.phase = phase
            self.message = message or PHASE_MESSAGES[phase]
            if phase == StartupPhase.READY:
                self.ready_at = datetime.now()

    def record_restore(self, players: int) -> None:
        with self._lock:
            self.players_restored = players

    def fail(self, error: str) -> None:
        """Mark startup as failed; /health then reports unhealthy."""
        with self._lock:
            self.phase = StartupPhase.FAILED
            self.message = PHASE_MESSAGES[StartupPhase.FAILED]
            self.error = error

    def set_error(self, error: str) -> None:
        """Record a non-fatal startup problem (e.g. scheduler did not start)."""
        with self._lock:
            self.error = error

    @property
    def is_ready(self) -> bool:
        return self.phase == StartupPhase.READY

    @property
    def elapsed_seconds(self) -> float:
        end = self.ready_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "phase": self.phase.value,
                "message": self.message,
                "is_ready": self.is_ready,
                "elapsed_seconds": round(self.elapsed_seconds, 1),
                "players_restored": self.players_restored,
                "scheduler_enabled": self.scheduler_enabled,
                "error": self.error,
            }


_startup_state = StartupState()


def get_startup_state() -> StartupState:
    return _startup_state


def reset_startup_state() -> None:
    """Fresh state, for tests that build several apps."""
    global _startup_state
    _startup_state = StartupState()
