from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

from .logging import get_logger
from .models import (
    SOURCE_CACHE,
    SOURCE_LIVE,
    SOURCE_STALE,
    CacheBucket,
    CacheEntry,
    SnapshotMeta,
    SnapshotResult,
    WeatherSnapshot,
)

logger = get_logger(__name__)

DEFAULT_BUCKET_KEY = "default"
FRESH_TTL_SECONDS = 5 * 60
STALE_TTL_SECONDS = 30 * 60

SnapshotFetcher = Callable[[], Awaitable[WeatherSnapshot]]


def _format_coordinate(value: float) -> str:
    text = f"{value:.3f}"
    return "0.000" if text == "-0.000" else text


def bucket_key(latitude: Optional[float] = None, longitude: Optional[float] = None) -> str:
    """Cache key for a location: ``default`` or coordinates rounded to ~111m."""
    if latitude is None or longitude is None:
        return DEFAULT_BUCKET_KEY
    return f"coords:{_format_coordinate(latitude)},{_format_coordinate(longitude)}"


def _consume_exception(task: "asyncio.Task[WeatherSnapshot]") -> None:
    # Marks the failure as retrieved when every waiter was cancelled.
    if not task.cancelled():
        task.exception()


class SnapshotCache:
    """Per-location snapshot cache with single-flight refresh and stale fallback.

    Each bucket holds the last fresh result, the last good result and at most
    one in-flight fetch task. Callers that arrive while a fetch is running
    await the same task. The task owns the bucket writes, so the result is
    stored even when every caller has gone away. Buckets are never evicted.
    """

    def __init__(
        self,
        *,
        fresh_ttl: float = FRESH_TTL_SECONDS,
        stale_ttl: float = STALE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.fresh_ttl = fresh_ttl
        self.stale_ttl = stale_ttl
        self._clock = clock
        self._buckets: Dict[str, CacheBucket] = {}

    def bucket(self, key: str) -> CacheBucket:
        existing = self._buckets.get(key)
        if existing is not None:
            return existing
        bucket = CacheBucket()
        self._buckets[key] = bucket
        return bucket

    def bucket_count(self) -> int:
        return len(self._buckets)

    async def get(
        self,
        key: str,
        fetcher: SnapshotFetcher,
        *,
        override_name: Optional[str] = None,
    ) -> SnapshotResult:
        bucket = self.bucket(key)
        now = self._clock()

        fresh = bucket.fresh
        if fresh is not None and now - fresh.fetched_at < self.fresh_ttl:
            logger.debug("cache.hit", bucket=key)
            return self._result(fresh.snapshot, SOURCE_CACHE, fresh.fetched_at, override_name)

        task = bucket.in_flight
        if task is None:
            logger.info("cache.refresh", bucket=key)
            task = asyncio.create_task(self._refresh(bucket, fetcher))
            task.add_done_callback(_consume_exception)
            bucket.in_flight = task
        else:
            logger.debug("cache.join", bucket=key)

        try:
            snapshot = await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            fallback = bucket.last_good or bucket.fresh
            if fallback is not None and now - fallback.fetched_at < self.stale_ttl:
                logger.warning(
                    "cache.stale",
                    bucket=key,
                    age_seconds=round(now - fallback.fetched_at, 1),
                    error=str(exc),
                )
                return self._result(fallback.snapshot, SOURCE_STALE, fallback.fetched_at, override_name)
            logger.error("cache.unavailable", bucket=key, error=str(exc))
            raise

        fetched_at = bucket.fresh.fetched_at if bucket.fresh is not None else self._clock()
        return self._result(snapshot, SOURCE_LIVE, fetched_at, override_name)

    async def _refresh(self, bucket: CacheBucket, fetcher: SnapshotFetcher) -> WeatherSnapshot:
        try:
            snapshot = await fetcher()
            entry = CacheEntry(snapshot=snapshot, fetched_at=self._clock())
            bucket.fresh = entry
            bucket.last_good = entry
            return snapshot
        finally:
            bucket.in_flight = None

    def _result(
        self,
        snapshot: WeatherSnapshot,
        source: str,
        fetched_at: float,
        override_name: Optional[str],
    ) -> SnapshotResult:
        return SnapshotResult(
            data=snapshot.with_location_name(override_name),
            meta=SnapshotMeta.build(source, fetched_at, self._clock()),
        )
