"""
Recurring job scheduler.

Owns independent periodic tasks for price monitoring, retention cleanup and
health probes. Each task sleeps for its interval, runs its job and repeats;
a failing job is logged and recorded without stopping its timer.
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from ..interfaces import ICatalogStore
from ..models.config import LIMITS, MonitoringConfig
from ..utils.error_handling import ErrorCategory, ErrorSeverity, with_error_handling
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..orchestrator import MonitoringOrchestrator

logger = get_logger("scheduler")

MONITORING_TASK = "price_monitoring"
CLEANUP_TASK = "cleanup"
HEALTH_TASK = "health_check"


def polling_interval_seconds(hours: float) -> int:
    """
    Convert a polling interval in hours to the effective period in seconds.

    Intervals of a day or more run in whole days, intervals of an hour or
    more in whole hours, and shorter ones in whole minutes (at least 10).
    """
    if hours >= 24:
        return math.floor(hours / 24) * 86400
    if hours >= 1:
        return int(hours) * 3600
    return max(10, math.ceil(hours * 60)) * 60


def seconds_until(hour: int, now: datetime) -> float:
    """Seconds from ``now`` until the next local ``hour``:00."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class PeriodicTask:
    """A job run every ``interval_seconds`` on the event loop."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[Any]],
        first_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.first_delay = first_delay
        self._sleep = sleep
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.next_run_time: Optional[datetime] = None
        self.last_run_time: Optional[datetime] = None
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer loop."""
        if self.is_running:
            logger.warning(f"Task {self.name} is already running")
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Cancel the timer loop and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.next_run_time = None

    async def _loop(self) -> None:
        delay = self.interval_seconds if self.first_delay is None else self.first_delay
        while True:
            self.next_run_time = self._clock() + timedelta(seconds=delay)
            await self._sleep(delay)

            self.last_run_time = self._clock()
            self.run_count += 1
            await self.callback()

            delay = self.interval_seconds

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "next_run_time": self.next_run_time,
            "last_run_time": self.last_run_time,
            "run_count": self.run_count,
        }


class MonitoringScheduler:
    """Schedules monitoring, cleanup and health jobs."""

    def __init__(
        self,
        orchestrator: "MonitoringOrchestrator",
        store: ICatalogStore,
        config: MonitoringConfig,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.config = config
        self._sleep = sleep
        self._clock = clock
        self.tasks: Dict[str, PeriodicTask] = {}
        self._catch_up_task: Optional[asyncio.Task] = None
        self.is_running = False
        self.last_health: Optional[Dict[str, Any]] = None

    def _make_task(self, name, interval_seconds, callback, first_delay=None) -> PeriodicTask:
        return PeriodicTask(
            name, interval_seconds, callback, first_delay, sleep=self._sleep, clock=self._clock
        )

    @property
    def monitoring_interval_seconds(self) -> int:
        return polling_interval_seconds(self.config.interval_hours)

    def start(self) -> None:
        """Register and start all recurring jobs, then check for a missed run."""
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        self.is_running = True
        interval = self.monitoring_interval_seconds
        first_delay = self._check_missed_run(interval)

        self.tasks[MONITORING_TASK] = self._make_task(
            MONITORING_TASK, interval, self._run_monitoring_job, first_delay
        )
        self.tasks[CLEANUP_TASK] = self._make_task(
            CLEANUP_TASK,
            86400,
            self._run_cleanup_job,
            seconds_until(self.config.cleanup_hour, self._clock()),
        )
        self.tasks[HEALTH_TASK] = self._make_task(
            HEALTH_TASK, self.config.health_check_minutes * 60, self._run_health_job
        )

        for task in self.tasks.values():
            task.start()

        logger.info(
            "Scheduler started",
            extra={"monitoring_interval_seconds": interval, "tasks": list(self.tasks)},
        )

    def _check_missed_run(self, interval: int) -> Optional[float]:
        """
        Schedule a catch-up run when the last run is older than the interval.

        Returns:
            Delay before the first regular run, or None for a full interval
        """
        last_run = self.store.get_last_run_time()
        if last_run is not None:
            elapsed = (self._clock() - last_run).total_seconds()
            if elapsed < interval:
                remaining = interval - elapsed
                logger.info(f"Next monitoring run in {remaining / 60:.1f} minutes")
                return remaining

        logger.info(
            f"Monitoring run overdue, catching up in {self.config.catch_up_delay_seconds}s",
            extra={"last_run_time": last_run},
        )
        self._catch_up_task = asyncio.create_task(self._catch_up())
        return None

    async def _catch_up(self) -> None:
        await self._sleep(self.config.catch_up_delay_seconds)
        await self._run_monitoring_job()

    def add_task(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[Any]],
        first_delay: Optional[float] = None,
    ) -> PeriodicTask:
        """Register an extra recurring job; it starts immediately if the scheduler is running."""
        if name in self.tasks:
            raise ValueError(f"Task {name} is already registered")

        wrapped = with_error_handling(
            component="scheduler",
            category=ErrorCategory.SYSTEM,
            suppress_exceptions=True,
        )(callback)
        task = self._make_task(name, interval_seconds, wrapped, first_delay)
        self.tasks[name] = task
        if self.is_running:
            task.start()
        return task

    async def update_monitoring_interval(self, hours: float) -> int:
        """
        Replace the polling task with one using the new interval.

        Returns:
            The effective interval in seconds
        """
        low, high = LIMITS["interval_hours"]
        if not low <= hours <= high:
            raise ValueError(f"interval_hours must be between {low:.2f} and {high}")

        self.config.interval_hours = hours
        interval = self.monitoring_interval_seconds

        old = self.tasks.pop(MONITORING_TASK, None)
        if old is not None:
            await old.stop()

        task = self._make_task(MONITORING_TASK, interval, self._run_monitoring_job)
        self.tasks[MONITORING_TASK] = task
        if self.is_running:
            task.start()

        logger.info(f"Monitoring interval updated to {hours}h ({interval}s)")
        return interval

    @with_error_handling(
        component="scheduler",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.HIGH,
        suppress_exceptions=True,
    )
    async def _run_monitoring_job(self) -> None:
        logger.info("Scheduled price monitoring triggered")
        await self.orchestrator.run_monitoring()

    @with_error_handling(
        component="scheduler",
        category=ErrorCategory.PERSISTENCE,
        suppress_exceptions=True,
    )
    async def _run_cleanup_job(self) -> None:
        logger.info(f"Running retention cleanup ({self.config.retention_days} days)")
        self.store.cleanup_older_than(self.config.retention_days)
        self.orchestrator.error_tracker.clear_old_errors()

    @with_error_handling(
        component="scheduler",
        category=ErrorCategory.EXTERNAL_SERVICE,
        severity=ErrorSeverity.LOW,
        suppress_exceptions=True,
    )
    async def _run_health_job(self) -> None:
        self.last_health = await self.orchestrator.get_health_status()

    async def run_manual_monitoring(self):
        """Run monitoring now with manual pacing."""
        return await self.orchestrator.run_monitoring(is_manual=True)

    async def run_manual_item_monitoring(self, external_id: int):
        """Run monitoring now for a single item."""
        return await self.orchestrator.monitor_single_item(external_id)

    def get_status(self) -> Dict[str, Any]:
        monitoring = self.tasks.get(MONITORING_TASK)
        return {
            "is_running": self.is_running,
            "monitoring_interval_hours": self.config.interval_hours,
            "last_run_time": self.orchestrator.progress.last_run_time,
            "next_run_time": monitoring.next_run_time if monitoring else None,
            "tasks": {name: task.get_status() for name, task in self.tasks.items()},
            "last_health": self.last_health,
        }

    async def stop(self) -> None:
        """Stop all recurring jobs."""
        if self._catch_up_task is not None:
            self._catch_up_task.cancel()
            try:
                await self._catch_up_task
            except asyncio.CancelledError:
                pass
            self._catch_up_task = None

        for task in self.tasks.values():
            await task.stop()

        self.is_running = False
        logger.info("Scheduler stopped")

    async def shutdown(self) -> None:
        """Stop all jobs and release orchestrator resources."""
        await self.stop()
        await self.orchestrator.shutdown()
