"""Durable fill job queue.

Jobs live in an APScheduler job store (Redis in production), so queued,
delayed and retried jobs survive a restart or redeploy. A background
scheduler hands due jobs to a fixed-size thread pool, since the handler does
blocking network I/O.

Delivery is at-least-once: every scheduled attempt is stored together with
a lease copy that fires again if the attempt has not finished in time, for
instance because the process died while the attempt was waiting or
running. A job whose result is retryable is scheduled again until its
attempt budget runs out, then recorded as failed for operators to inspect.
"""

from __future__ import annotations

import json
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

import redis
import structlog
from apscheduler.events import EVENT_JOB_SUBMITTED, JobSubmissionEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import BaseJobStore, JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.redis import RedisJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from solver.jobs.result import FailureKind, FillResult
from solver.models.jobs import FillJob

logger = structlog.get_logger()

KEY_PREFIX = "solver:queue:"

# Failed jobs kept for inspection
MAX_FAILED_JOBS = 10_000

# Longest an attempt may run before its lease copy is started
DEFAULT_LEASE_SECONDS = 600

# Running queues by name; stored jobs refer to their queue by name only
_queues: dict[str, FillQueue] = {}
_queues_lock = threading.Lock()


def run_fill_job(queue_name: str, job_id: str, payload: str, attempt: int) -> None:
    """Job store entry point: hand a stored job to the queue that owns it."""
    with _queues_lock:
        queue = _queues.get(queue_name)
    if queue is None:
        raise RuntimeError(f"No fill queue named {queue_name!r} is running")
    queue.run(job_id, FillJob.model_validate_json(payload), attempt)


class JobQueue(Protocol):
    """Anything fill jobs can be scheduled on."""

    def enqueue(self, job: FillJob, delay_seconds: float = 0) -> str:
        """Schedule a job, optionally not before ``delay_seconds`` from now.

        Returns:
            Job id
        """
        ...


@dataclass(frozen=True)
class FailedJob:
    job_id: str
    job: FillJob
    result: FillResult
    attempts: int

    def to_json(self) -> str:
        return json.dumps(
            {
                "jobId": self.job_id,
                "job": self.job.model_dump(mode="json", by_alias=True),
                "failure": self.result.failure.value if self.result.failure else None,
                "detail": self.result.detail,
                "attempts": self.attempts,
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> FailedJob:
        data = json.loads(raw)
        failure = FailureKind(data["failure"]) if data["failure"] else None
        return cls(
            job_id=data["jobId"],
            job=FillJob.model_validate(data["job"]),
            result=FillResult(outcome=None, failure=failure, detail=data["detail"]),
            attempts=data["attempts"],
        )


class FailedJobLog(Protocol):
    """Bounded record of jobs that ran out of attempts, newest first."""

    def record(self, failed: FailedJob) -> None: ...

    def recent(self, limit: int = 100) -> list[FailedJob]: ...


class RedisFailedJobLog:
    """Failed jobs as a capped Redis list."""

    def __init__(
        self,
        client: redis.Redis,
        key: str = f"{KEY_PREFIX}failed",
        max_entries: int = MAX_FAILED_JOBS,
    ) -> None:
        self.client = client
        self.key = key
        self.max_entries = max_entries

    def record(self, failed: FailedJob) -> None:
        self.client.lpush(self.key, failed.to_json())
        self.client.ltrim(self.key, 0, self.max_entries - 1)

    def recent(self, limit: int = 100) -> list[FailedJob]:
        return [FailedJob.from_json(raw) for raw in self.client.lrange(self.key, 0, limit - 1)]


class InMemoryFailedJobLog:
    """Process-local failed job log for tests and development."""

    def __init__(self, max_entries: int = MAX_FAILED_JOBS) -> None:
        self._entries: deque[FailedJob] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record(self, failed: FailedJob) -> None:
        with self._lock:
            self._entries.appendleft(failed)

    def recent(self, limit: int = 100) -> list[FailedJob]:
        with self._lock:
            return list(self._entries)[:limit]


class FillQueue:
    """At-least-once fill queue over a persistent APScheduler job store.

    ``enqueue`` is safe to call from any thread (the matchmaker handshake
    reschedules itself from inside a job).
    """

    def __init__(
        self,
        handler: Callable[[FillJob], FillResult],
        jobstore: BaseJobStore | None = None,
        failed: FailedJobLog | None = None,
        concurrency: int = 10,
        attempts: int = 2,
        retry_delay_seconds: float = 1.0,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
        name: str = "fill",
    ) -> None:
        """Initialize the queue.

        Args:
            handler: Blocking job handler
            jobstore: Where scheduled jobs live (default: in memory, not durable)
            failed: Where jobs out of attempts are recorded (default: in memory)
            concurrency: Number of jobs handled in parallel
            attempts: Attempts per job (first run included)
            retry_delay_seconds: Delay before a retryable failure runs again
            lease_seconds: Delay after which an unfinished attempt is run again
            name: Queue name stored with every job
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        if attempts < 1:
            raise ValueError(f"attempts must be positive, got {attempts}")

        self._handler = handler
        self.jobstore = jobstore or MemoryJobStore()
        self.failed: FailedJobLog = failed or InMemoryFailedJobLog()
        self.concurrency = concurrency
        self.attempts = attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.lease_seconds = lease_seconds
        self.name = name

        self._scheduler: BackgroundScheduler | None = None
        self._in_flight = 0
        self._in_flight_lock = threading.Lock()

    @classmethod
    def with_redis(
        cls,
        handler: Callable[[FillJob], FillResult],
        client: redis.Redis,
        **kwargs,
    ) -> FillQueue:
        """Queue whose jobs and failure log live in Redis."""
        jobstore = RedisJobStore(
            jobs_key=f"{KEY_PREFIX}jobs",
            run_times_key=f"{KEY_PREFIX}run_times",
        )
        # RedisJobStore builds its own client from connection kwargs; share ours
        jobstore.redis = client
        return cls(handler, jobstore=jobstore, failed=RedisFailedJobLog(client), **kwargs)

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Start dispatching stored jobs, including any left by a previous process."""
        if self._scheduler is not None:
            return
        with _queues_lock:
            if self.name in _queues:
                raise RuntimeError(f"A fill queue named {self.name!r} is already running")
            _queues[self.name] = self

        scheduler = BackgroundScheduler(
            jobstores={"default": self.jobstore},
            executors={"default": ThreadPoolExecutor(max_workers=self.concurrency)},
            job_defaults={"misfire_grace_time": None, "coalesce": False, "max_instances": 1},
            timezone="UTC",
        )
        scheduler.add_listener(self._on_submitted, EVENT_JOB_SUBMITTED)
        # Stored jobs may be due at once and reschedule through self._scheduler
        self._scheduler = scheduler
        scheduler.start()
        logger.info(
            "fill_queue_started",
            name=self.name,
            concurrency=self.concurrency,
            attempts=self.attempts,
            stored_jobs=len(scheduler.get_jobs()),
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Stop dispatching; running attempts finish and stored jobs stay stored."""
        scheduler = self._scheduler
        if scheduler is None:
            return
        scheduler.pause()
        # Dispatch happens under the job store lock; once it is free every
        # submitted job has been counted
        scheduler.get_jobs()
        # Running jobs write to the job store, which shutdown locks
        idle = self._wait(lambda: self._running() <= 0, timeout)
        if not idle:
            logger.warning("fill_queue_stop_timeout", name=self.name, running=self._running())
        scheduler.shutdown(wait=idle)
        self._scheduler = None
        with _queues_lock:
            _queues.pop(self.name, None)
        logger.info("fill_queue_stopped", name=self.name)

    def join(self, timeout: float = 10.0) -> bool:
        """Wait until no job is stored or running.

        Returns:
            False if jobs were still pending after ``timeout`` seconds
        """
        scheduler = self._scheduler
        if scheduler is None:
            return True
        return self._wait(lambda: self._running() <= 0 and not scheduler.get_jobs(), timeout)

    def enqueue(self, job: FillJob, delay_seconds: float = 0) -> str:
        job_id = uuid.uuid4().hex
        self._schedule(job_id, job, attempt=1, delay_seconds=delay_seconds)
        return job_id

    def run(self, job_id: str, job: FillJob, attempt: int) -> FillResult:
        """Run one attempt of a stored job and settle its outcome."""
        try:
            if attempt > self.attempts:
                # A lease fired after the last attempt was interrupted
                result = FillResult.retryable("Interrupted on its last attempt")
                self._record_failure(job_id, job, result, self.attempts)
                return result

            lease_id = self._lease(job_id, job, attempt, datetime.now(timezone.utc))
            try:
                return self._attempt(job_id, job, attempt)
            finally:
                self._release(lease_id)
        finally:
            with self._in_flight_lock:
                self._in_flight -= 1

    def _attempt(self, job_id: str, job: FillJob, attempt: int) -> FillResult:
        try:
            result = self._handler(job)
        except Exception as e:
            logger.exception("job_crashed", job_id=job_id, attempt=attempt)
            result = FillResult.retryable(f"Handler raised: {e}")

        if result.is_success:
            logger.debug(
                "job_completed",
                job_id=job_id,
                outcome=result.outcome.value if result.outcome else None,
            )
            return result

        if result.is_retryable and attempt < self.attempts:
            logger.warning("job_retrying", job_id=job_id, attempt=attempt, detail=result.detail)
            self._schedule(job_id, job, attempt=attempt + 1, delay_seconds=self.retry_delay_seconds)
            return result

        self._record_failure(job_id, job, result, attempt)
        return result

    def _record_failure(self, job_id: str, job: FillJob, result: FillResult, attempts: int) -> None:
        logger.error(
            "job_failed",
            job_id=job_id,
            attempts=attempts,
            failure=result.failure.value if result.failure else None,
            detail=result.detail,
        )
        self.failed.record(FailedJob(job_id=job_id, job=job, result=result, attempts=attempts))

    def _schedule(self, job_id: str, job: FillJob, attempt: int, delay_seconds: float) -> None:
        run_at = datetime.now(timezone.utc) + timedelta(seconds=max(delay_seconds, 0))
        self._store(f"{job_id}:{attempt}", run_at, job_id, job, attempt)
        self._lease(job_id, job, attempt, run_at)

    def _lease(self, job_id: str, job: FillJob, attempt: int, start: datetime) -> str:
        """Store the copy that reruns ``attempt`` if it has not finished in time."""
        lease_id = f"{job_id}:{attempt}:lease"
        run_at = start + timedelta(seconds=self.lease_seconds)
        self._store(lease_id, run_at, job_id, job, attempt + 1)
        return lease_id

    def _store(
        self, stored_id: str, run_at: datetime, job_id: str, job: FillJob, attempt: int
    ) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            raise RuntimeError("FillQueue is not running")
        scheduler.add_job(
            run_fill_job,
            trigger="date",
            run_date=run_at,
            args=[self.name, job_id, job.model_dump_json(by_alias=True), attempt],
            id=stored_id,
            replace_existing=True,
        )

    def _release(self, lease_id: str) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            return
        try:
            scheduler.remove_job(lease_id)
        except JobLookupError:
            logger.warning("job_lease_already_fired", lease_id=lease_id)

    def _on_submitted(self, event: JobSubmissionEvent) -> None:
        with self._in_flight_lock:
            self._in_flight += 1

    def _running(self) -> int:
        with self._in_flight_lock:
            return self._in_flight

    @staticmethod
    def _wait(predicate: Callable[[], bool], timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True
