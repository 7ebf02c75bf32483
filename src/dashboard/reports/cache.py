"""In-process report cache.

Keeps summary lists and full report payloads keyed by module, entry kind and
the output-affecting subset of ReportParams. Entries expire individually; a
background reaper sweeps expired entries and a per-module key index makes
invalidation precise.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import threading
from collections import OrderedDict
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from shared.config import CacheSettings, EvictionPolicy
from shared.models import ReportData, ReportParams, Summary
from shared.observability import get_logger

logger = get_logger(__name__)

# ReportParams fields that change module output. Cache controls are excluded.
KEY_FIELDS = frozenset(
    {
        "start_time",
        "end_time",
        "applications",
        "teams",
        "environments",
        "filters",
        "group_by",
        "sort_by",
        "sort_order",
        "limit",
        "offset",
        "format",
    }
)


class CacheKind(str, Enum):
    SUMMARY = "summary"
    REPORT = "report"


class CacheEntry(BaseModel):
    """Cached payload with its absolute expiry."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    payload: Any
    module_id: str
    kind: CacheKind
    created_at: datetime
    expires_at: datetime
    hits: int = 0


class CacheStats(BaseModel):
    """Point-in-time snapshot of cache counters."""

    summary_hits: int = 0
    summary_misses: int = 0
    summary_sets: int = 0
    report_hits: int = 0
    report_misses: int = 0
    report_sets: int = 0
    evictions: int = 0
    total_entries: int = 0
    last_cleanup: datetime | None = None


def _key_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value.total_seconds())
    return str(value)


def make_cache_key(module_id: str, kind: CacheKind | str, params: ReportParams) -> str:
    """Derive a deterministic key for (module, kind, params).

    Uses a SHA256 hash of a canonical JSON document so that equal params give
    equal keys regardless of filter map ordering.
    """
    document = {
        "report_id": module_id,
        "kind": CacheKind(kind).value,
        "params": params.model_dump(include=set(KEY_FIELDS)),
    }
    encoded = json.dumps(document, sort_keys=True, separators=(",", ":"), default=_key_default)
    return hashlib.sha256(encoded.encode()).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportCache:
    """Keyed TTL cache shared by all report modules.

    All operations are synchronous and guarded by a single lock, so the cache
    is safe to use from the event loop and from worker threads alike.
    """

    def __init__(
        self,
        default_ttl: timedelta = timedelta(minutes=10),
        cleanup_period: timedelta = timedelta(minutes=5),
        max_size: int = 0,
        eviction_policy: EvictionPolicy = EvictionPolicy.LRU,
        clock: Callable[[], datetime] | None = None,
    ):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self._default_ttl = default_ttl
        self._cleanup_period = cleanup_period
        self._max_size = max_size
        self._policy = EvictionPolicy(eviction_policy)
        self._clock = clock or _utcnow

        self._lock = threading.Lock()
        # Iteration order is write order (FIFO) or recency order (LRU)
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._index: dict[str, set[str]] = {}
        self._counters: dict[str, int] = {
            "summary_hits": 0,
            "summary_misses": 0,
            "summary_sets": 0,
            "report_hits": 0,
            "report_misses": 0,
            "report_sets": 0,
            "evictions": 0,
        }
        self._last_cleanup: datetime | None = None
        self._reaper: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> ReportCache:
        return cls(
            default_ttl=settings.default_ttl,
            cleanup_period=settings.cleanup_period,
            max_size=settings.max_size,
            eviction_policy=settings.eviction_policy,
        )

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    def get_summary(self, module_id: str, params: ReportParams) -> list[Summary] | None:
        """Return cached summaries, or None on a miss."""
        payload = self._lookup(module_id, CacheKind.SUMMARY, params)
        if payload is None:
            return None
        return list(payload)

    def set_summary(
        self,
        module_id: str,
        params: ReportParams,
        summaries: list[Summary],
        ttl: timedelta | None = None,
    ) -> None:
        self._store(module_id, CacheKind.SUMMARY, params, list(summaries), ttl)

    def get_report(self, module_id: str, params: ReportParams) -> ReportData | None:
        """Return a private copy of a cached report, or None on a miss."""
        payload = self._lookup(module_id, CacheKind.REPORT, params)
        if payload is None:
            return None
        return payload.model_copy(deep=True)

    def set_report(
        self,
        module_id: str,
        params: ReportParams,
        data: ReportData,
        ttl: timedelta | None = None,
    ) -> None:
        self._store(module_id, CacheKind.REPORT, params, data.model_copy(deep=True), ttl)

    def _lookup(self, module_id: str, kind: CacheKind, params: ReportParams) -> Any:
        cache_key = make_cache_key(module_id, kind, params)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(cache_key)
            if entry is not None and now >= entry.expires_at:
                self._drop(cache_key)
                entry = None

            if entry is None:
                self._counters[f"{kind.value}_misses"] += 1
                payload = None
            else:
                self._counters[f"{kind.value}_hits"] += 1
                entry.hits += 1
                if self._policy == EvictionPolicy.LRU:
                    self._entries.move_to_end(cache_key)
                payload = entry.payload

        logger.debug(
            "Cache hit" if payload is not None else "Cache miss",
            report_id=module_id,
            kind=kind.value,
            cache_key=cache_key,
        )
        return payload

    def _store(
        self,
        module_id: str,
        kind: CacheKind,
        params: ReportParams,
        payload: Any,
        ttl: timedelta | None,
    ) -> None:
        cache_key = make_cache_key(module_id, kind, params)
        if ttl is None or ttl <= timedelta(0):
            ttl = self._default_ttl
        now = self._clock()

        try:
            entry = CacheEntry(
                payload=payload,
                module_id=module_id,
                kind=kind,
                created_at=now,
                expires_at=now + ttl,
            )
            with self._lock:
                if cache_key in self._entries:
                    self._drop(cache_key)
                elif self._max_size and len(self._entries) >= self._max_size:
                    self._make_room(now)
                # Index first: a dangling index key is harmless, an unindexed entry is not
                self._index.setdefault(module_id, set()).add(cache_key)
                self._entries[cache_key] = entry
                self._counters[f"{kind.value}_sets"] += 1
        except MemoryError:
            logger.warning(
                "Cache write skipped",
                report_id=module_id,
                kind=kind.value,
                reason="out of memory",
            )
            return

        logger.debug(
            "Cached result",
            report_id=module_id,
            kind=kind.value,
            cache_key=cache_key,
            ttl_seconds=ttl.total_seconds(),
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def invalidate(self, module_id: str) -> int:
        """Remove every entry belonging to module_id.

        Returns:
            Number of invalidated entries
        """
        with self._lock:
            keys = self._index.pop(module_id, set())
            removed = sum(1 for key in keys if self._entries.pop(key, None) is not None)

        logger.info("Invalidated cache", report_id=module_id, count=removed)
        return removed

    def clear(self) -> None:
        """Empty the cache and record the sweep instant."""
        now = self._clock()
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._index.clear()
            self._last_cleanup = now

        logger.info("Cache cleared", count=count)

    def cleanup(self) -> int:
        """Remove expired entries once.

        Returns:
            Number of removed entries
        """
        now = self._clock()
        with self._lock:
            removed = self._purge_expired(now)
            self._last_cleanup = now
        return removed

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            live = sum(1 for entry in self._entries.values() if now < entry.expires_at)
            return CacheStats(
                **self._counters,
                total_entries=live,
                last_cleanup=self._last_cleanup,
            )

    def _drop(self, cache_key: str) -> None:
        entry = self._entries.pop(cache_key, None)
        if entry is None:
            return
        keys = self._index.get(entry.module_id)
        if keys is not None:
            keys.discard(cache_key)
            if not keys:
                del self._index[entry.module_id]

    def _purge_expired(self, now: datetime) -> int:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            self._drop(key)
        return len(expired)

    def _make_room(self, now: datetime) -> None:
        self._purge_expired(now)
        while self._entries and len(self._entries) >= self._max_size:
            if self._policy == EvictionPolicy.LFU:
                victim = min(self._entries.items(), key=lambda item: item[1].hits)[0]
            else:
                victim = next(iter(self._entries))
            self._drop(victim)
            self._counters["evictions"] += 1
            logger.debug("Evicted cache entry", cache_key=victim, policy=self._policy.value)

    # ------------------------------------------------------------------
    # Background reaper
    # ------------------------------------------------------------------

    @property
    def reaper_running(self) -> bool:
        return self._reaper is not None and not self._reaper.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.reaper_running:
            return
        self._reaper = asyncio.create_task(self._reap(), name="report-cache-reaper")
        logger.debug("Cache reaper started", period_seconds=self._cleanup_period.total_seconds())

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._reaper = self._reaper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _reap(self) -> None:
        period = self._cleanup_period.total_seconds()
        while True:
            await asyncio.sleep(period)
            removed = self.cleanup()
            logger.debug("Cache sweep completed", removed=removed)
