"""Fill job queue and attempt results."""

from solver.jobs.queue import (
    FailedJob,
    FillQueue,
    InMemoryFailedJobLog,
    JobQueue,
    RedisFailedJobLog,
)
from solver.jobs.result import FailureKind, FillResult, Outcome, VoidReason

__all__ = [
    "FailedJob",
    "FailureKind",
    "FillQueue",
    "FillResult",
    "InMemoryFailedJobLog",
    "JobQueue",
    "Outcome",
    "RedisFailedJobLog",
    "VoidReason",
]
