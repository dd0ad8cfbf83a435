"""
Query cache — time-boxed read results keyed by resource identity.

Keys are tuples whose leading items form a namespace:

    ("cases", "all", params)
    ("cases", case_id)
    ("cases", case_id, "workflow-status")

A mutation calls `invalidate(prefix)` and every entry under that prefix is
marked stale, so the next observation refetches it. That is the only
invalidation protocol; nothing else evicts entries early.

Concurrent fetches of one key share a single in-flight request. If a key
is invalidated while its request is in flight, the response is not stored
and the key is fetched again before the caller sees a value.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Hashable

from pydantic import ValidationError

from rahat_dashboard.config import settings
from rahat_dashboard.errors import ApiError

logger = logging.getLogger(__name__)

Key = tuple[Hashable, ...]
Fetcher = Callable[[], Awaitable[Any]]

# Stale windows, in seconds
SESSION_STALE = 5 * 60
LIST_STALE = 2 * 60
DETAIL_STALE = 60
WORKFLOW_STATUS_STALE = 30
STATS_STALE = 5 * 60
REFERENCE_STALE = 10 * 60
SEARCH_STALE = 5 * 60


def freeze(params: dict | None) -> tuple:
    """Turn a params dict into a hashable, order-independent key part."""
    if not params:
        return ()
    return tuple(sorted((k, v) for k, v in params.items() if v is not None and v != ""))


@dataclass
class RetryPolicy:
    """Bounded retries for reads; 401/403/404 are never retried."""
    max_retries: int = field(default_factory=lambda: settings.read_retry_limit)
    base_delay: float = field(default_factory=lambda: settings.retry_base_delay_seconds)
    max_delay: float = field(default_factory=lambda: settings.retry_max_delay_seconds)

    def should_retry(self, failures: int, error: Exception) -> bool:
        if isinstance(error, ApiError) and not error.retryable:
            return False
        return failures <= self.max_retries

    def delay_for(self, failures: int) -> float:
        return min(self.base_delay * (2 ** (failures - 1)), self.max_delay)


NO_RETRY = RetryPolicy(max_retries=0)


@dataclass
class CacheEntry:
    value: Any
    fetched_at: float
    stale_time: float
    invalidated: bool = False

    def is_fresh(self, now: float) -> bool:
        return not self.invalidated and (now - self.fetched_at) < self.stale_time


@dataclass
class QueryState:
    """What a view renders: data, or an error it can offer to retry."""
    data: Any = None
    error: Exception | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def retryable(self) -> bool:
        if self.error is None:
            return False
        if isinstance(self.error, ApiError):
            return self.error.retryable
        return False

    def as_view(self) -> dict:
        error = None
        if isinstance(self.error, ApiError):
            error = self.error.to_dict()
        elif self.error is not None:
            error = {"status": None, "code": None, "title": "Unexpected response", "message": str(self.error)}
        return {"data": self.data, "error": error, "retryable": self.retryable}


async def settle(awaitable: Awaitable[Any]) -> QueryState:
    """Await a read and fold a failure into a QueryState."""
    try:
        return QueryState(data=await awaitable)
    except (ApiError, ValidationError) as exc:
        logger.warning("Read failed: %s", exc)
        return QueryState(error=exc)


class QueryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic, retry: RetryPolicy | None = None):
        self._clock = clock
        self._retry = retry or RetryPolicy()
        self._entries: dict[Key, CacheEntry] = {}
        self._generations: dict[Key, int] = {}
        self._in_flight: dict[Key, tuple[int, asyncio.Task]] = {}

    # ── Reads ──

    def peek(self, key: Key) -> CacheEntry | None:
        return self._entries.get(key)

    async def fetch(
        self,
        key: Key,
        fetcher: Fetcher,
        *,
        stale_time: float,
        retry: RetryPolicy | None = None,
        force: bool = False,
    ) -> Any:
        """Return a fresh value for `key`, fetching it if needed."""
        entry = self._entries.get(key)
        if not force and entry is not None and entry.is_fresh(self._clock()):
            return entry.value

        generation = self._generations.get(key, 0)
        in_flight = self._in_flight.get(key)
        if in_flight is not None and in_flight[0] == generation and not force:
            task = in_flight[1]
        else:
            generation += 1
            self._generations[key] = generation
            task = asyncio.ensure_future(self._run(fetcher, retry or self._retry))
            task.add_done_callback(partial(self._forget, key))
            self._in_flight[key] = (generation, task)

        value = await asyncio.shield(task)

        if self._generations.get(key) != generation:
            logger.debug("Discarding superseded response for %s", key)
            return await self.fetch(key, fetcher, stale_time=stale_time, retry=retry)

        self._entries[key] = CacheEntry(value, self._clock(), stale_time)
        return value

    def _forget(self, key: Key, task: asyncio.Task) -> None:
        # runs even when every caller was cancelled
        current = self._in_flight.get(key)
        if current is not None and current[1] is task:
            del self._in_flight[key]

    async def observe(self, key: Key, fetcher: Fetcher, *, stale_time: float, retry: RetryPolicy | None = None) -> QueryState:
        """Like fetch, but failures come back as an error state."""
        return await settle(self.fetch(key, fetcher, stale_time=stale_time, retry=retry))

    async def _run(self, fetcher: Fetcher, retry: RetryPolicy) -> Any:
        failures = 0
        while True:
            try:
                return await fetcher()
            except ApiError as exc:
                failures += 1
                if not retry.should_retry(failures, exc):
                    raise
                delay = retry.delay_for(failures)
                logger.info("Read failed (%s), retry %d in %.1fs", exc, failures, delay)
                await asyncio.sleep(delay)

    # ── Invalidation ──

    def invalidate(self, prefix: Key) -> int:
        """Mark every entry under `prefix` stale; returns how many matched."""
        n = len(prefix)
        marked = 0
        for key in set(self._entries) | set(self._in_flight):
            if key[:n] != prefix:
                continue
            entry = self._entries.get(key)
            if entry is not None:
                entry.invalidated = True
            if key in self._in_flight:
                self._generations[key] = self._generations.get(key, 0) + 1
            marked += 1
        if marked:
            logger.debug("Invalidated %d cache entries under %s", marked, prefix)
        return marked

    def invalidate_many(self, *prefixes: Key) -> int:
        return sum(self.invalidate(prefix) for prefix in prefixes)

    def clear(self) -> None:
        self._entries.clear()
        self._generations.clear()
        self._in_flight.clear()

    def __len__(self) -> int:
        return len(self._entries)
