# offerwatch/jobs.py
"""
Job Registry
────────────
Owns every recurring background job of the process. A job is a name, a
fixed interval and a zero-argument entry point.

    registry = JobRegistry(timeout=1800)
    registry.register(ScanJob("daily-scanner", timedelta(hours=24), scanner.scan_all_sites))
    registry.run_once("daily-scanner")          # immediate, outside the cadence
    task = registry.schedule("daily-scanner")   # first firing one interval from now
    task.cancel()

Overlap policy: skip if busy. A job holds its own lock for as long as its
entry point runs. A firing (scheduled or manual) that finds the lock taken
is logged, counted in skipped_count and dropped. The next regular firing
runs normally.

Entry points run on a bounded worker pool and are awaited for at most
`timeout` seconds. A job that overruns is marked failed, but keeps its
lock until the work really ends.

Failures never unschedule a job: the trigger stays installed and the next
interval runs again.
"""
from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger("offerwatch.jobs")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class DuplicateJobError(ValueError):
    """A job name was registered twice. Programming error, fail fast."""


class UnknownJobError(LookupError):
    """No job with that name exists in the registry."""


class JobState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


_IMMUTABLE_FIELDS = ("name", "interval")


@dataclass(eq=False)
class ScanJob:
    """
    One recurring unit of background work.

    name and interval are fixed once the job exists. Everything else is
    run bookkeeping, written only by the registry.
    """
    name: str
    interval: timedelta
    entry_point: Callable[[], Any]
    description: str = ""

    state: JobState = JobState.IDLE
    last_run_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
    run_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _state_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _deadline_missed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("job name must not be empty")
        if self.interval <= timedelta(0):
            raise ValueError(f"job {self.name!r} needs a positive interval")

    def __setattr__(self, key, value):
        if key in _IMMUTABLE_FIELDS and key in self.__dict__:
            raise AttributeError(f"ScanJob.{key} cannot change after creation")
        object.__setattr__(self, key, value)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "intervalSeconds": int(self.interval.total_seconds()),
            "state": self.state.value,
            "busy": self.busy,
            "lastRunAt": self.last_run_at.isoformat() if self.last_run_at else None,
            "lastFinishedAt": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "lastError": self.last_error,
            "runCount": self.run_count,
            "failureCount": self.failure_count,
            "skippedCount": self.skipped_count,
        }


@dataclass
class ScheduledTask:
    """Cancellable handle for an installed periodic trigger."""
    job_name: str
    first_run_at: datetime
    _remove: Callable[[], None] = field(repr=False)
    cancelled: bool = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._remove()


class JobRegistry:
    def __init__(
        self,
        scheduler=None,
        clock: Callable[[], datetime] = now_utc,
        timeout: float | None = None,
        max_workers: int = 8,
    ):
        self._scheduler = scheduler or BackgroundScheduler(daemon=True, timezone="UTC")
        self._clock = clock
        self.timeout = timeout or None
        self._jobs: Dict[str, ScanJob] = {}
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="scan-job"
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, job: ScanJob) -> ScanJob:
        with self._lock:
            if job.name in self._jobs:
                raise DuplicateJobError(f"job {job.name!r} is already registered")
            self._jobs[job.name] = job
        logger.info("Registered job %s (every %s)", job.name, job.interval)
        return job

    def get(self, name: str) -> ScanJob:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobError(f"no job named {name!r}") from None

    def jobs(self) -> List[ScanJob]:
        return list(self._jobs.values())

    def is_scheduled(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.cancelled

    def snapshot(self) -> List[dict]:
        out = []
        for job in self.jobs():
            data = job.to_dict()
            task = self._tasks.get(job.name)
            data["scheduled"] = self.is_scheduled(job.name)
            data["firstRunAt"] = task.first_run_at.isoformat() if task else None
            out.append(data)
        return out

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run_once(self, name: str) -> bool:
        """Run a job now, outside its cadence. Returns True on success."""
        return self._invoke(self.get(name), trigger="manual")

    def run_bounded(self, label: str, fn: Callable[[], Any]) -> Any:
        """
        Run an arbitrary callable on the worker pool with the registry
        timeout. Exceptions from fn propagate; an overrun raises TimeoutError.
        """
        future = self._executor.submit(fn)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            raise TimeoutError(f"{label} did not finish within {self.timeout}s") from None

    def _fire(self, name: str) -> None:
        job = self._jobs.get(name)
        if job is None:
            logger.warning("Trigger fired for unknown job %s", name)
            return
        self._invoke(job, trigger="scheduled")

    def _invoke(self, job: ScanJob, trigger: str) -> bool:
        if not job._lock.acquire(blocking=False):
            job.skipped_count += 1
            logger.warning(
                "Job %s is still running, skipping %s run (skipped %d so far)",
                job.name, trigger, job.skipped_count,
            )
            return False

        with job._state_lock:
            job._deadline_missed = False
            job.state = JobState.RUNNING
            job.last_run_at = self._clock()
            job.run_count += 1
        logger.info("Job %s started (%s run #%d)", job.name, trigger, job.run_count)

        try:
            future = self._executor.submit(self._execute, job)
        except RuntimeError as e:
            # Pool already shut down
            job._lock.release()
            self._settle(job, f"{type(e).__name__}: {e}")
            return False

        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            with job._state_lock:
                if future.done():
                    return future.result()
                job._deadline_missed = True
                job.state = JobState.FAILED
                job.failure_count += 1
                job.last_error = f"timed out after {self.timeout}s"
                job.last_finished_at = self._clock()
            logger.error(
                "Job %s exceeded %ss; marked failed, further runs skip until it returns",
                job.name, self.timeout,
            )
            return False

    def _execute(self, job: ScanJob) -> bool:
        """Worker-pool side. Holds the job lock until the entry point returns."""
        try:
            job.entry_point()
        except Exception as e:
            logger.exception("Job %s failed", job.name)
            self._settle(job, f"{type(e).__name__}: {e}")
            return False
        else:
            self._settle(job, None)
            return True
        finally:
            job._lock.release()

    def _settle(self, job: ScanJob, error: Optional[str]) -> None:
        with job._state_lock:
            if job._deadline_missed:
                logger.warning(
                    "Job %s finished after its deadline (%s)",
                    job.name, error or "ok",
                )
                return
            job.last_finished_at = self._clock()
            if error is None:
                job.state = JobState.IDLE
                job.last_error = None
                logger.info("Job %s finished", job.name)
            else:
                job.state = JobState.FAILED
                job.failure_count += 1
                job.last_error = error[:500]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, name: str) -> ScheduledTask:
        """
        Install a periodic trigger for a job. The first firing is one full
        interval from now, never immediately. Scheduling an already
        scheduled job returns the existing handle.
        """
        job = self.get(name)
        with self._lock:
            existing = self._tasks.get(name)
            if existing and not existing.cancelled:
                logger.info("Job %s already scheduled", name)
                return existing

            first_run = self._clock() + job.interval
            trigger = IntervalTrigger(
                seconds=job.interval.total_seconds(),
                start_date=first_run,
                timezone="UTC",
            )
            self._scheduler.add_job(
                self._fire,
                trigger=trigger,
                args=[name],
                id=name,
                name=job.description or name,
                replace_existing=True,
                max_instances=1,    # APScheduler side of the skip-if-busy policy
                coalesce=True,
                misfire_grace_time=None,
            )
            task = ScheduledTask(
                job_name=name,
                first_run_at=first_run,
                _remove=lambda: self._remove_trigger(name),
            )
            self._tasks[name] = task

            if not self._scheduler.running:
                self._scheduler.start()

        logger.info("Scheduled job %s every %s, first run at %s", name, job.interval, first_run.isoformat())
        return task

    def cancel(self, name: str) -> None:
        task = self._tasks.get(name)
        if task:
            task.cancel()

    def _remove_trigger(self, name: str) -> None:
        try:
            self._scheduler.remove_job(name)
        except JobLookupError:
            logger.debug("Trigger for %s already removed", name)
        logger.info("Cancelled schedule for job %s", name)

    def shutdown(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Job registry stopped")
