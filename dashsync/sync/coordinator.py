"""
Loading coordinator: key-based request deduplication with a short TTL cache.

When several consumers ask for the same resource at the same time (every
dashboard widget mounting at once), only one underlying load runs and all
callers share its result. Successful results are cached for a short window
so a read right after a read does not hit the network again.

Guarantees:
- At most one in-flight load per key.
- A failed load is never cached and its in-flight registration is removed,
  so the next call retries.
- A caller being cancelled does not cancel the shared load.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from dashsync.core.observability import Metrics
from dashsync.core.observability import metrics as default_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry:
    """A resolved load, replaced wholesale by the next successful load for its key."""

    key: str
    data: Any
    timestamp: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp < ttl_seconds


class LoadingCoordinator:
    """
    Deduplicates and caches loads keyed by resource name.

    One instance is created at application startup and passed to every store
    that needs it; its two maps are the only state shared between stores.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        metrics_instance: Metrics | None = None,
    ):
        """
        Args:
            ttl_seconds: How long a successful load is served from cache
            clock: Monotonic time source in seconds (injectable for tests)
            metrics_instance: Metrics sink (uses global if None)
        """
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._metrics = metrics_instance or default_metrics
        self._cache: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def cached(self, key: str) -> CacheEntry | None:
        """Return the fresh cache entry for `key`, or None."""
        entry = self._cache.get(key)
        if entry is not None and entry.is_fresh(self._clock(), self._ttl_seconds):
            return entry
        return None

    def is_loading(self, key: str) -> bool:
        return key in self._in_flight

    async def coordinated_load(
        self,
        key: str,
        load_fn: Callable[[], Awaitable[T]],
        *,
        skip_cache: bool = False,
        force_reload: bool = False,
    ) -> T:
        """
        Load `key` through the cache and the in-flight registry.

        Args:
            key: Coordinator key identifying the logical resource
            load_fn: Zero-argument coroutine function performing the real load
            skip_cache: Ignore a fresh cache entry, but still join a load
                that is already in flight
            force_reload: Return data from a load that started after this
                call. A load already in flight is waited out first, then a
                new one is started (or joined, if another forced caller got
                there first).

        Returns:
            The loaded data, identical for every caller that shared the load

        Raises:
            Whatever `load_fn` raised, delivered to every caller sharing it
        """
        if not (skip_cache or force_reload):
            entry = self.cached(key)
            if entry is not None:
                logger.debug(f"Serving {key} from cache")
                self._metrics.coordinator_requests_total.labels(
                    key=key, served_from="cache"
                ).inc()
                return entry.data

        existing = self._in_flight.get(key)
        if existing is not None:
            if force_reload:
                # Outcome of the stale load is irrelevant to this caller.
                await asyncio.wait({existing})
                return await self.coordinated_load(key, load_fn, skip_cache=True)
            logger.debug(f"Joining in-flight load for {key}")
            self._metrics.coordinator_requests_total.labels(key=key, served_from="in_flight").inc()
            return await asyncio.shield(existing)

        self._metrics.coordinator_requests_total.labels(key=key, served_from="load").inc()
        task = asyncio.ensure_future(self._run_load(key, load_fn))
        self._in_flight[key] = task
        self._metrics.coordinator_in_flight.inc()
        return await asyncio.shield(task)

    async def _run_load(self, key: str, load_fn: Callable[[], Awaitable[T]]) -> T:
        start = time.perf_counter()
        try:
            data = await load_fn()
        except BaseException:
            self._metrics.coordinator_loads_total.labels(key=key, status="error").inc()
            raise
        else:
            self._cache[key] = CacheEntry(key=key, data=data, timestamp=self._clock())
            self._metrics.coordinator_loads_total.labels(key=key, status="success").inc()
            return data
        finally:
            self._in_flight.pop(key, None)
            self._metrics.coordinator_in_flight.dec()
            self._metrics.coordinator_load_duration_seconds.labels(key=key).observe(
                time.perf_counter() - start
            )

    def clear_cache(self, key: str | None = None) -> None:
        """Drop one cache entry, or all of them. In-flight loads are unaffected."""
        if key is None:
            self._cache.clear()
            logger.debug("Coordinator cache cleared")
        else:
            self._cache.pop(key, None)
            logger.debug(f"Coordinator cache cleared for {key}")

    async def aclose(self) -> None:
        """Wait for in-flight loads to settle and drop the cache."""
        if self._in_flight:
            await asyncio.wait(set(self._in_flight.values()))
        self._cache.clear()
