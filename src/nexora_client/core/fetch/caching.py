"""
Response caching and request de-duplication.

`ResponseCache` is a time-based cache-aside store for read payloads.
`InFlightRequests` lets concurrent identical reads share one execution.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, str]
Clock = Callable[[], float]


def serialize_params(params: Mapping[str, Any] | None) -> str:
    """Deterministic serialization of query parameters for cache keys."""
    if not params:
        return ""
    return json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))


def build_cache_key(url: str, params: Mapping[str, Any] | None = None) -> CacheKey:
    return (url, serialize_params(params))


@dataclass
class CacheEntry:
    """A stored read payload."""

    payload: Any
    stored_at: float


class ResponseCache:
    """TTL cache for read payloads.

    Invalidation clears everything and bumps an epoch. A read that began
    before an invalidation passes its starting epoch to `store`, which
    refuses to write a payload fetched against the old contents.
    """

    def __init__(self, timeout_ms: int, clock: Clock | None = None):
        """Initialize the cache.

        Args:
            timeout_ms: Entry lifetime in milliseconds
            clock: Monotonic clock in seconds (default: time.monotonic)
        """
        self.timeout_ms = timeout_ms
        self._clock = clock or time.monotonic
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> CacheEntry | None:
        """Return the entry for `key` if it is younger than the timeout."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        age_ms = (self._clock() - entry.stored_at) * 1000
        if age_ms < self.timeout_ms:
            return entry

        del self._entries[key]
        return None

    def store(self, key: CacheKey, payload: Any, epoch: int | None = None) -> bool:
        """Store a payload.

        Args:
            key: Cache key
            payload: Response payload
            epoch: Epoch observed when the read started

        Returns:
            True if stored, False if the cache was invalidated meanwhile
        """
        if epoch is not None and epoch != self._epoch:
            logger.debug("Dropping payload for %s fetched before invalidation", key[0])
            return False
        self._entries[key] = CacheEntry(payload=payload, stored_at=self._clock())
        return True

    def invalidate(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._epoch += 1


class InFlightRequests(Generic[T]):
    """Share one execution among concurrent callers of the same key.

    The first caller starts the work as a task; later callers for the same
    key await that task. Everyone sees the same result or the same error.
    The task is forgotten once it settles.
    """

    def __init__(self) -> None:
        self._tasks: dict[CacheKey, asyncio.Task[T]] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    async def run(self, key: CacheKey, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("Joining in-flight request for %s", key[0])

        # One caller going away must not cancel the shared work
        return await asyncio.shield(task)

    def _forget(self, key: CacheKey, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # Mark the exception retrieved when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    def forget_all(self) -> None:
        """Detach running tasks so later callers start a fresh execution.

        Callers already waiting keep their result; the tasks are not cancelled.
        """
        self._tasks.clear()
