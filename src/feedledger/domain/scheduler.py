"""Sync scheduler owning the registry of per-connection tasks.

The registry is the single source of scheduling state. ``run_pending``
drives it deterministically from a supplied clock; ``start`` hands the
same tasks to an APScheduler background scheduler for long-running use.
Both are level-triggered: a task that was due several times while the
process was down runs once and is then due one interval later.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feedledger.database.base import Database
from feedledger.domain.entities import BankConnection, SyncResult
from feedledger.domain.errors import RateSourceError
from feedledger.domain.rates import ExchangeRateCache
from feedledger.domain.revaluation import RevaluationEngine
from feedledger.domain.sync import SyncService
from feedledger.utils.date_parser import utcnow

logger = logging.getLogger(__name__)

REGISTRY_JOB_ID = "refresh_registry"
RATE_JOB_ID = "refresh_rates"
REVALUATION_JOB_ID = "revaluation"


def sync_job_id(connection_id: int) -> str:
    return f"sync_connection_{connection_id}"


@dataclass
class ScheduledTask:
    """A connection's slot in the registry."""

    connection_id: int
    interval_seconds: int
    next_run_at: datetime

    def is_due(self, now: datetime) -> bool:
        return now >= self.next_run_at


class SyncScheduler:
    """Long-lived owner of every scheduled sync, rate and revaluation job."""

    def __init__(
        self,
        db: Database,
        sync_service: SyncService,
        rate_cache: Optional[ExchangeRateCache] = None,
        revaluation: Optional[RevaluationEngine] = None,
        rate_refresh_hours: float = 6.0,
        revaluation_hours: Optional[float] = None,
        registry_refresh_seconds: int = 60,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize scheduler.

        Args:
            db: Database instance
            sync_service: Service running one cycle per connection
            rate_cache: Cache refreshed on the rate job
            revaluation: Engine run on the revaluation job
            rate_refresh_hours: Rate refresh cadence
            revaluation_hours: Revaluation cadence; None disables the job
            registry_refresh_seconds: How often active connections are re-read
                while running in the background
            clock: Returns the current UTC instant
        """
        self.db = db
        self.sync_service = sync_service
        self.rate_cache = rate_cache
        self.revaluation = revaluation
        self.rate_refresh_hours = rate_refresh_hours
        self.revaluation_hours = revaluation_hours
        self.registry_refresh_seconds = registry_refresh_seconds
        self.clock = clock or utcnow
        self._tasks: dict[int, ScheduledTask] = {}
        self._lock = threading.RLock()
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def tasks(self) -> dict[int, ScheduledTask]:
        """Snapshot of the registry."""
        with self._lock:
            return {
                cid: ScheduledTask(t.connection_id, t.interval_seconds, t.next_run_at)
                for cid, t in self._tasks.items()
            }

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def schedule(self, connection: BankConnection, now: Optional[datetime] = None) -> None:
        """Add or update a connection's task. New tasks are due immediately."""
        if not connection.is_active:
            self.unschedule(connection.id)
            return
        now = now or self.clock()
        interval = connection.sync_interval.seconds
        with self._lock:
            task = self._tasks.get(connection.id)
            if task is None:
                self._tasks[connection.id] = ScheduledTask(connection.id, interval, now)
                logger.info("Scheduled connection %s every %ss", connection.id, interval)
            elif task.interval_seconds != interval:
                task.interval_seconds = interval
                task.next_run_at = min(task.next_run_at, now + timedelta(seconds=interval))
            else:
                return
            if self.running:
                self._add_sync_job(connection.id, interval)

    def unschedule(self, connection_id: int) -> None:
        """Drop a connection's task; an in-flight cycle may still finish."""
        with self._lock:
            removed = self._tasks.pop(connection_id, None)
            if self.running and self._scheduler.get_job(sync_job_id(connection_id)):
                self._scheduler.remove_job(sync_job_id(connection_id))
        if removed is not None:
            logger.info("Unscheduled connection %s", connection_id)

    def refresh_registry(self, now: Optional[datetime] = None) -> None:
        """Bring the registry in line with the currently active connections."""
        now = now or self.clock()
        active = {c.id: c for c in self.db.list_connections(active_only=True)}
        with self._lock:
            for connection_id in list(self._tasks):
                if connection_id not in active:
                    self.unschedule(connection_id)
            for connection in active.values():
                self.schedule(connection, now)

    def run_pending(self, now: Optional[datetime] = None) -> list[SyncResult]:
        """Run every due cycle once, then reschedule it one interval ahead.

        Missed ticks are not replayed. One connection's failure never stops
        the others.
        """
        now = now or self.clock()
        self.refresh_registry(now)
        with self._lock:
            due = [t for t in self._tasks.values() if t.is_due(now)]

        results = []
        for task in sorted(due, key=lambda t: t.connection_id):
            result = self.run_cycle(task.connection_id)
            with self._lock:
                if task.connection_id in self._tasks:
                    task.next_run_at = now + timedelta(seconds=task.interval_seconds)
            if result is not None:
                results.append(result)
        return results

    def run_cycle(self, connection_id: int) -> Optional[SyncResult]:
        """Run one connection's cycle, isolating any failure.

        Returns None when the connection is gone or no longer active.
        """
        connection = self.db.get_connection(connection_id)
        if connection is None or not connection.is_active:
            self.unschedule(connection_id)
            return None
        try:
            result = self.sync_service.sync_connection(connection_id)
        except Exception as e:
            logger.exception("Sync cycle for connection %s failed", connection_id)
            return SyncResult(
                connection_id=connection_id,
                success=False,
                errors=[str(e)],
                error_code=getattr(e, "code", "internal_error"),
            )
        if not result.success and result.error_code == "fetch_auth":
            self.unschedule(connection_id)
        return result

    def refresh_rates(self) -> None:
        """Rate job body; a failed refresh keeps the last table."""
        if self.rate_cache is None:
            return
        try:
            self.rate_cache.refresh()
        except RateSourceError as e:
            logger.warning("Scheduled rate refresh failed: %s", e)

    def run_revaluation(self) -> None:
        """Revaluation job body."""
        if self.revaluation is None:
            return
        try:
            self.revaluation.revalue()
        except Exception:
            logger.exception("Scheduled revaluation failed")

    def _add_sync_job(self, connection_id: int, interval_seconds: int) -> None:
        self._scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=interval_seconds),
            args=[connection_id],
            id=sync_job_id(connection_id),
            name=f"Sync connection {connection_id}",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            next_run_time=datetime.now(),
        )

    def start(self) -> None:
        """Start background scheduling of every registered task."""
        if self.running:
            return
        self.refresh_registry()
        self._scheduler = BackgroundScheduler()
        self._scheduler.start()
        with self._lock:
            for task in self._tasks.values():
                self._add_sync_job(task.connection_id, task.interval_seconds)

        self._scheduler.add_job(
            self.refresh_registry,
            trigger=IntervalTrigger(seconds=self.registry_refresh_seconds),
            id=REGISTRY_JOB_ID,
            name="Refresh active connections",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if self.rate_cache is not None:
            self._scheduler.add_job(
                self.refresh_rates,
                trigger=IntervalTrigger(hours=self.rate_refresh_hours),
                id=RATE_JOB_ID,
                name="Refresh exchange rates",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                next_run_time=datetime.now(),
            )
        if self.revaluation is not None and self.revaluation_hours:
            self._scheduler.add_job(
                self.run_revaluation,
                trigger=IntervalTrigger(hours=self.revaluation_hours),
                id=REVALUATION_JOB_ID,
                name="Revalue foreign-currency positions",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        logger.info("Sync scheduler started with %d connection(s)", len(self._tasks))

    def stop(self, wait: bool = True) -> None:
        """Stop background scheduling; in-flight cycles finish when ``wait``."""
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Sync scheduler stopped")
