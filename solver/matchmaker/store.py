"""Short-lived rendezvous store for in-flight matchmaker handshakes.

A record is written once when a solution is submitted to the matchmaker and
consumed once when the matchmaker's authorization callback arrives. Records
nobody claims simply expire.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol

import redis

from solver.models.jobs import CachedSolution

KEY_PREFIX = "solver:"


def rendezvous_key(request_id: str) -> str:
    return f"{KEY_PREFIX}{request_id}"


class RendezvousStore(Protocol):
    """Write-once, consume-once key/value store with expiry."""

    def put(self, request_id: str, record: CachedSolution, ttl_seconds: int) -> None:
        """Store a record that expires after ``ttl_seconds``."""
        ...

    def consume(self, request_id: str) -> CachedSolution | None:
        """Return and delete the record, or None if absent or expired."""
        ...


class RedisRendezvousStore:
    """Redis-backed store; ``GETDEL`` makes the read-and-delete atomic."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    def put(self, request_id: str, record: CachedSolution, ttl_seconds: int) -> None:
        payload = record.model_dump_json(by_alias=True)
        self.client.set(rendezvous_key(request_id), payload, ex=ttl_seconds)

    def consume(self, request_id: str) -> CachedSolution | None:
        raw = self.client.getdel(rendezvous_key(request_id))
        if not raw:
            return None
        return CachedSolution.model_validate_json(raw)


class InMemoryRendezvousStore:
    """Process-local store for tests and single-process development.

    Expired records are dropped on every write.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._records: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def put(self, request_id: str, record: CachedSolution, ttl_seconds: int) -> None:
        now = self._clock()
        expires_at = now + ttl_seconds
        with self._lock:
            expired = [key for key, (deadline, _) in self._records.items() if now >= deadline]
            for key in expired:
                del self._records[key]
            self._records[rendezvous_key(request_id)] = (
                expires_at,
                record.model_dump_json(by_alias=True),
            )

    def consume(self, request_id: str) -> CachedSolution | None:
        with self._lock:
            entry = self._records.pop(rendezvous_key(request_id), None)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            return None
        return CachedSolution.model_validate_json(payload)

    def __len__(self) -> int:
        return len(self._records)
