"""Background poll scheduler.

Polls the stats provider for every tracked player and feeds the results to
the TrackingEngine. Players are split into two buckets on every tick:

- active: a match within the last 30 minutes (or added within the last 30
  minutes if they never had one), fetched every tick
- inactive: everyone else, fetched at most once per 2 minutes

Fetches run on a small thread pool bounded by the rate limiter's
concurrency ceiling; results are applied one at a time on the scheduler
thread, so no two diffs for the same player ever overlap.

Alongside polling the loop also expires temporary players and resets the
daily K/D counters at local midnight (cron expression, croniter).

Integrates with FastAPI lifespan for clean startup/shutdown.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime

from croniter import croniter

from hivewatch.config import PollSettings
from hivewatch.consumers.tracker import TrackingEngine
from hivewatch.core import (
    ExpiryNotice,
    NotFoundError,
    NotificationRecord,
    NotificationSink,
    StateStore,
    StatSnapshot,
    StatsProvider,
    TrackedPlayer,
    TransientFetchError,
)

logger = logging.getLogger(__name__)

INACTIVE_PACING_SECONDS = 0.5


class PollInProgressError(RuntimeError):
    """A tick is already running and the caller asked not to wait for it."""


@dataclass
class TickSummary:
    """What one poll tick did."""

    started_at: float
    active: int = 0
    inactive: int = 0
    fetched: int = 0
    failed: int = 0
    new_games: int = 0
    notifications: int = 0
    skipped: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    changed: bool = False

    def to_dict(self) -> dict:
        return {
            "started_at": datetime.fromtimestamp(self.started_at).isoformat(),
            "active": self.active,
            "inactive": self.inactive,
            "fetched": self.fetched,
            "failed": self.failed,
            "new_games": self.new_games,
            "notifications": self.notifications,
            "skipped": list(self.skipped),
            "duration_seconds": round(self.duration_seconds, 2),
        }


class PollScheduler:
    """Adaptive poller running in a background thread.

    Usage:
        scheduler = PollScheduler(engine, provider, sink=sink, store=store)
        scheduler.start()
        # ... application runs ...
        scheduler.stop()

    FastAPI integration:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            scheduler = PollScheduler(engine, provider)
            scheduler.start()
            yield
            scheduler.stop()
    """

    def __init__(
        self,
        engine: TrackingEngine,
        provider: StatsProvider,
        sink: NotificationSink | None = None,
        store: StateStore | None = None,
        settings: PollSettings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the scheduler.

        Args:
            engine: Tracking engine holding the roster and per-player state
            provider: Stats provider (already rate limited)
            sink: Receives notification records; None drops them
            store: Engine state is saved here after ticks that changed it
            settings: Cadence, pacing and budget
            clock: Returns epoch seconds; injectable for tests
        """
        self._engine = engine
        self._provider = provider
        self._sink = sink
        self._store = store
        self._settings = settings or PollSettings()
        self._clock = clock

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._running = False
        self._executor: ThreadPoolExecutor | None = None

        self._ticks = 0
        self._last_tick: TickSummary | None = None
        self._last_cleanup_at: float | None = None
        self._next_daily_reset: float | None = None
        # One tick at a time, so a player never has two fetches in flight
        self._tick_lock = threading.RLock()

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def settings(self) -> PollSettings:
        return self._settings

    @property
    def last_tick(self) -> TickSummary | None:
        return self._last_tick

    def start(self) -> bool:
        """Start the scheduler.

        Returns:
            True if started, False if already running or misconfigured
        """
        if self.is_running:
            logger.warning("[POLL] Scheduler already running")
            return False

        try:
            croniter(self._settings.daily_reset_cron)
        except (KeyError, ValueError) as e:
            logger.error(
                "[POLL] Invalid daily reset cron '%s': %s", self._settings.daily_reset_cron, e
            )
            return False

        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop,
            name="poll-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "[POLL] Scheduler started (every %.1fs, %d player(s))",
            self._settings.interval_seconds,
            len(self._engine),
        )
        return True

    def stop(self, timeout: float = 30.0) -> bool:
        """Stop the scheduler gracefully.

        In-flight fetches are abandoned; a player update is never applied
        halfway.

        Returns:
            True if stopped, False if timeout
        """
        if not self.is_running:
            self._shutdown_executor()
            return True

        logger.info("[POLL] Stopping scheduler...")
        self._stop_event.set()
        self._running = False

        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[POLL] Scheduler thread did not stop in time")
                return False

        self._shutdown_executor()
        logger.info("[POLL] Scheduler stopped")
        return True

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, self._settings.max_concurrent),
                thread_name_prefix="hive-fetch",
            )
        return self._executor

    def run_once(self, now: float | None = None, wait: bool = True) -> dict:
        """Run one loop iteration: housekeeping plus a poll tick.

        Args:
            now: Epoch seconds, defaults to the clock
            wait: Block while another tick runs instead of raising

        Returns:
            Dict with task results

        Raises:
            PollInProgressError: wait is False and a tick is running
        """
        if not self._tick_lock.acquire(blocking=wait):
            raise PollInProgressError("a poll tick is already running")
        try:
            return self._run_once(now)
        finally:
            self._tick_lock.release()

    def _run_once(self, now: float | None) -> dict:
        now = self._clock() if now is None else now
        results: dict = {"started_at": datetime.fromtimestamp(now).isoformat()}

        try:
            results["expired"] = [n.player for n in self.cleanup_expired(now)]
        except Exception as e:
            logger.warning("[POLL] Temporary player cleanup failed: %s", e)
            results["expired"] = {"error": str(e)}

        try:
            results["daily_reset"] = self.reset_daily_if_due(now)
        except Exception as e:
            logger.warning("[POLL] Daily reset failed: %s", e)
            results["daily_reset"] = {"error": str(e)}

        results["tick"] = self.tick(now).to_dict()
        return results

    def _run_loop(self) -> None:
        """Main scheduler loop - runs in background thread."""
        while not self._stop_event.is_set():
            started = self._clock()
            try:
                self.run_once(started)
            except Exception as e:
                logger.exception("[POLL] Error in scheduler run: %s", e)

            elapsed = self._clock() - started
            self._stop_event.wait(max(0.0, self._settings.interval_seconds - elapsed))

    # =========================================================================
    # Bucketing
    # =========================================================================

    def is_active(self, player: TrackedPlayer, now: float) -> bool:
        return now - player.activity_reference() <= self._settings.inactive_after_seconds

    def partition(self, now: float) -> tuple[list[TrackedPlayer], list[TrackedPlayer]]:
        """Split the roster into (active, inactive players due a check)."""
        active: list[TrackedPlayer] = []
        inactive_due: list[TrackedPlayer] = []
        for player in self._engine.players():
            if self.is_active(player, now):
                active.append(player)
            elif (
                player.inactive_last_check is None
                or now - player.inactive_last_check >= self._settings.inactive_poll_seconds
            ):
                inactive_due.append(player)
        return active, inactive_due

    # =========================================================================
    # Tick
    # =========================================================================

    def tick(self, now: float | None = None) -> TickSummary:
        """Fetch every due player and apply the results serially.

        Blocks while another tick is running.
        """
        with self._tick_lock:
            return self._tick(self._clock() if now is None else now)

    def _tick(self, now: float) -> TickSummary:
        active, inactive = self.partition(now)
        summary = TickSummary(started_at=now, active=len(active), inactive=len(inactive))

        if active or inactive:
            futures = self._submit_fetches(active, inactive, now, summary)
            for future in as_completed(futures):
                self._apply_result(futures[future], future, summary)

            if summary.changed and self._store is not None:
                self._persist()

        summary.duration_seconds = self._clock() - now
        self._ticks += 1
        self._last_tick = summary
        if summary.new_games or summary.failed:
            logger.info(
                "[POLL] Tick: %d active, %d inactive, %d new game(s), %d failed",
                summary.active,
                summary.inactive,
                summary.new_games,
                summary.failed,
            )
        return summary

    def _submit_fetches(
        self,
        active: list[TrackedPlayer],
        inactive: list[TrackedPlayer],
        now: float,
        summary: TickSummary,
    ) -> dict[Future, TrackedPlayer]:
        executor = self._get_executor()
        futures: dict[Future, TrackedPlayer] = {}
        active_gap = min(1.0, self._settings.interval_seconds / len(active)) if active else 0.0

        for index, player in enumerate(active):
            if index and not self._pace(active_gap):
                return futures
            futures[executor.submit(self._provider.fetch_snapshot, player.username)] = player

        for index, player in enumerate(inactive):
            if (index or active) and not self._pace(INACTIVE_PACING_SECONDS):
                return futures
            self._engine.mark_inactive_check(player.key, now)
            summary.changed = True
            futures[executor.submit(self._provider.fetch_snapshot, player.username)] = player

        return futures

    def _pace(self, seconds: float) -> bool:
        """Wait between submissions. False once stop was requested."""
        if self._settings.pace_requests and seconds > 0:
            self._stop_event.wait(seconds)
        return not self._stop_event.is_set()

    def _apply_result(
        self,
        player: TrackedPlayer,
        future: Future,
        summary: TickSummary,
    ) -> None:
        try:
            snapshot: StatSnapshot = future.result()
        except NotFoundError:
            logger.warning("[POLL] %s no longer exists on the provider, skipping", player.username)
            summary.failed += 1
            summary.skipped.append(player.key)
            return
        except TransientFetchError as e:
            logger.warning("[POLL] Fetch failed for %s: %s", player.username, e)
            summary.failed += 1
            summary.skipped.append(player.key)
            return
        except Exception as e:
            logger.exception("[POLL] Unexpected fetch error for %s: %s", player.username, e)
            summary.failed += 1
            summary.skipped.append(player.key)
            return

        stats_changed = snapshot != player.last_stats
        try:
            result = self._engine.apply_snapshot(player.key, snapshot, self._clock())
        except KeyError:
            logger.debug("[POLL] %s was removed during the tick", player.key)
            return
        except Exception as e:
            logger.exception("[POLL] Could not apply stats for %s: %s", player.username, e)
            summary.failed += 1
            summary.skipped.append(player.key)
            return

        summary.fetched += 1
        if stats_changed:
            summary.changed = True
        summary.new_games += len(result.events)
        for record in result.records:
            self._publish(record)
            summary.notifications += 1

    def _publish(self, record: NotificationRecord) -> None:
        if self._sink is None:
            return
        try:
            self._sink.publish(record)
        except Exception as e:
            logger.warning("[NOTIFY] Failed to publish %s: %s", type(record).__name__, e)

    def _persist(self) -> None:
        try:
            self._engine.save_to(self._store)
        except Exception as e:
            logger.exception("[STATE] Failed to save state: %s", e)

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def cleanup_expired(self, now: float | None = None, force: bool = False) -> list[ExpiryNotice]:
        """Remove temporary players whose tracking ran out.

        Runs at most once per `temp_cleanup_seconds` unless forced.
        """
        now = self._clock() if now is None else now
        if (
            not force
            and self._last_cleanup_at is not None
            and now - self._last_cleanup_at < self._settings.temp_cleanup_seconds
        ):
            return []
        self._last_cleanup_at = now

        notices = []
        for player in self._engine.expired_players(now):
            if self._engine.remove_player(player.key) is None:
                continue
            logger.info("[ROSTER] Temporary tracking for %s expired", player.username)
            notice = ExpiryNotice(player=player.username, expired_at=now)
            notices.append(notice)
            self._publish(notice)

        if notices and self._store is not None:
            self._persist()
        return notices

    def next_daily_reset(self, now: float) -> float:
        """Epoch seconds of the next daily reset after `now`."""
        base = datetime.fromtimestamp(now, tz=self._settings.timezone)
        return croniter(self._settings.daily_reset_cron, base).get_next(datetime).timestamp()

    def reset_daily_if_due(self, now: float | None = None) -> bool:
        """Zero the daily K/D counters once the cron boundary has passed."""
        now = self._clock() if now is None else now
        if self._next_daily_reset is None:
            self._next_daily_reset = self.next_daily_reset(now)
            return False
        if now < self._next_daily_reset:
            return False

        self._engine.reset_daily_stats(now)
        self._next_daily_reset = self.next_daily_reset(now)
        if self._store is not None:
            self._persist()
        return True

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "interval_seconds": self._settings.interval_seconds,
            "tracked_players": len(self._engine),
            "ticks": self._ticks,
            "last_tick": self._last_tick.to_dict() if self._last_tick else None,
            "next_daily_reset": (
                datetime.fromtimestamp(self._next_daily_reset).isoformat()
                if self._next_daily_reset
                else None
            ),
        }
