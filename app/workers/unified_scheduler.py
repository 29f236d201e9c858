"""
Background task scheduler.

One loop thread pops due jobs off a heap and hands them to a bounded
ThreadPoolExecutor, so a slow feed never delays the next tick. Interval
jobs are fixed-rate (the next run advances from the scheduled time, not
from completion) and never pile up after a stall. Daily jobs fire at a
UTC "HH:MM".

A failing run is logged and recorded in history; the job stays scheduled.
"""

from __future__ import annotations

import heapq
import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from app.constants import Intervals
from app.utils.time import utc_now

logger = logging.getLogger(__name__)


class ScheduleType(str, Enum):
    INTERVAL = "interval"
    DAILY = "daily"

    def __str__(self) -> str:
        return self.value


@dataclass
class JobResult:
    """Outcome of one job execution."""

    job_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


@dataclass
class ScheduledJob:
    job_id: str
    task_name: str
    schedule_type: ScheduleType
    enabled: bool = True
    args: tuple = field(default_factory=tuple)
    kwargs: Dict[str, Any] = field(default_factory=dict)

    interval_seconds: Optional[int] = None  # INTERVAL
    time_of_day: Optional[str] = None  # "HH:MM" UTC, DAILY

    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    run_count: int = 0
    failure_count: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "task_name": self.task_name,
            "schedule_type": self.schedule_type.value,
            "enabled": self.enabled,
            "interval_seconds": self.interval_seconds,
            "time_of_day": self.time_of_day,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""
    try:
        hour_text, minute_text = value.split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"time_of_day must be HH:MM, got {value!r}") from e
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"time_of_day out of range: {value!r}")
    return hour, minute


def next_daily_run(time_of_day: str, now: Optional[datetime] = None) -> datetime:
    hour, minute = parse_time_of_day(time_of_day)
    now = now or utc_now()
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class UnifiedScheduler:
    """Heap-driven scheduler with a bounded worker pool."""

    def __init__(
        self,
        check_interval_seconds: float = Intervals.SCHEDULER_TICK,
        max_history: int = 200,
        max_workers: int = 2,
    ):
        self._check_interval = float(check_interval_seconds)
        self._max_workers = int(max_workers)

        self._tasks: Dict[str, Callable[..., Any]] = {}
        self._jobs: Dict[str, ScheduledJob] = {}
        # (run_at_ts, seq, job_id); stale entries are skipped rather than removed
        self._heap: List[Tuple[float, int, str]] = []
        self._seq = 0
        self._history: Deque[JobResult] = deque(maxlen=int(max_history))

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    # --- Registration ------------------------------------------------------

    def register_task(self, name: str, func: Callable[..., Any]) -> None:
        self._tasks[name] = func
        logger.debug("Registered task: %s", name)

    def has_task(self, name: str) -> bool:
        return name in self._tasks

    def _push(self, job: ScheduledJob) -> None:
        if not job.enabled or job.next_run is None:
            return
        self._seq += 1
        heapq.heappush(self._heap, (job.next_run.timestamp(), self._seq, job.job_id))

    def _add(self, job: ScheduledJob) -> ScheduledJob:
        if job.task_name not in self._tasks:
            raise KeyError(f"Unknown task: {job.task_name}")
        with self._lock:
            self._jobs[job.job_id] = job
            self._push(job)
        return job

    def schedule_interval(
        self,
        task_name: str,
        interval_seconds: int,
        *,
        job_id: Optional[str] = None,
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        start_immediately: bool = False,
    ) -> ScheduledJob:
        if int(interval_seconds) <= 0:
            raise ValueError("interval_seconds must be positive")
        now = utc_now()
        job = ScheduledJob(
            job_id=job_id or task_name,
            task_name=task_name,
            schedule_type=ScheduleType.INTERVAL,
            args=args,
            kwargs=kwargs or {},
            interval_seconds=int(interval_seconds),
            next_run=now if start_immediately else now + timedelta(seconds=int(interval_seconds)),
        )
        self._add(job)
        logger.info("Scheduled %s every %ss", job.job_id, interval_seconds)
        return job

    def schedule_daily(
        self,
        task_name: str,
        time_of_day: str,
        *,
        job_id: Optional[str] = None,
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> ScheduledJob:
        job = ScheduledJob(
            job_id=job_id or f"{task_name}@{time_of_day}",
            task_name=task_name,
            schedule_type=ScheduleType.DAILY,
            args=args,
            kwargs=kwargs or {},
            time_of_day=time_of_day,
            next_run=next_daily_run(time_of_day),
        )
        self._add(job)
        logger.info("Scheduled %s daily at %s UTC", job.job_id, time_of_day)
        return job

    def remove_job(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def get_job(self, job_id: str) -> Optional[ScheduledJob]:
        return self._jobs.get(job_id)

    def get_jobs(self) -> List[ScheduledJob]:
        return list(self._jobs.values())

    # --- Execution ---------------------------------------------------------

    def run_now(self, task_name: str, *, args: tuple = (), kwargs: Optional[Dict[str, Any]] = None) -> JobResult:
        """Run a registered task synchronously in the caller's thread."""
        func = self._tasks.get(task_name)
        if func is None:
            raise KeyError(f"Unknown task: {task_name}")
        return self._invoke(f"{task_name}:manual", func, args, kwargs or {})

    def _invoke(self, job_id: str, func: Callable[..., Any], args: tuple, kwargs: Dict[str, Any]) -> JobResult:
        started_at = utc_now()
        try:
            value = func(*args, **kwargs)
        except Exception as e:
            logger.error("Job %s failed: %s", job_id, e, exc_info=True)
            result = JobResult(job_id, False, started_at, utc_now(), error=str(e))
        else:
            result = JobResult(job_id, True, started_at, utc_now(), result=value)
            logger.debug("Job %s completed in %.2fs", job_id, result.duration_seconds)
        with self._lock:
            self._history.append(result)
        return result

    def _execute(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None or not job.enabled:
            return
        func = self._tasks[job.task_name]
        result = self._invoke(job.job_id, func, job.args, job.kwargs)
        with self._lock:
            job.last_run = result.started_at
            job.run_count += 1
            if not result.success:
                job.failure_count += 1
            job.last_error = result.error

    def _advance(self, job: ScheduledJob, scheduled_for: datetime) -> None:
        if job.schedule_type == ScheduleType.DAILY:
            job.next_run = next_daily_run(job.time_of_day or "00:00")
            return
        interval = timedelta(seconds=job.interval_seconds or 60)
        next_run = scheduled_for + interval
        now = utc_now()
        if next_run <= now:
            missed = int((now - next_run) / interval) + 1
            next_run += interval * missed
        job.next_run = next_run

    def process_due_jobs(self, now: Optional[datetime] = None) -> int:
        """Submit every due job to the worker pool; returns how many were submitted."""
        now_ts = (now or utc_now()).timestamp()
        submitted = 0
        with self._lock:
            while self._heap and self._heap[0][0] <= now_ts:
                run_at_ts, _seq, job_id = heapq.heappop(self._heap)
                job = self._jobs.get(job_id)
                if job is None or not job.enabled or job.next_run is None:
                    continue
                if abs(job.next_run.timestamp() - run_at_ts) > 1e-6:
                    continue

                self._advance(job, job.next_run)
                self._push(job)

                if self._executor is None:
                    logger.warning("Scheduler not started; skipping %s", job_id)
                    continue
                self._executor.submit(self._execute, job_id)
                submitted += 1
        return submitted

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.process_due_jobs()
            except Exception as e:
                logger.error("Error in scheduler loop: %s", e, exc_info=True)
            self._stop_event.wait(self._check_interval)

    # --- Lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if self.is_running():
            logger.warning("Scheduler already running")
            return
        self._stop_event.clear()
        self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="SchedulerJob")
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="UnifiedScheduler")
        self._thread.start()
        logger.info("Scheduler started with %d job(s)", len(self._jobs))

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        if wait:
            self._thread.join(timeout=timeout)
        self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # --- Introspection -----------------------------------------------------

    def get_history(self, job_id: Optional[str] = None, limit: int = 50) -> List[JobResult]:
        with self._lock:
            results = [r for r in self._history if job_id is None or r.job_id == job_id]
        return list(reversed(results))[: int(limit)]

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            recent = list(self._history)[-20:]
            return {
                "running": self.is_running(),
                "jobs": [job.to_dict() for job in self._jobs.values()],
                "history_size": len(self._history),
                "recent_failures": sum(1 for r in recent if not r.success),
                "checked_at": utc_now().isoformat(),
            }

