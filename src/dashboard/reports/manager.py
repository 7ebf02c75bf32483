"""Report module registry and orchestrator.

The manager owns the module table and the report cache. It serves listings,
the dashboard summary fan-out and single reports. Module coroutines always run
outside the table lock so slow upstreams never block registration or listing.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import Field

from shared.config import Settings
from shared.models import (
    DashboardBaseModel,
    ReportData,
    ReportKind,
    ReportMetadata,
    ReportParams,
    ReportStatus,
    Summary,
)
from shared.observability import get_logger

from .cache import CacheStats, ReportCache
from .contract import ReportModule
from .exceptions import (
    AllReportsFailedError,
    DuplicateReportError,
    InvalidReportIdError,
    ReportNotFoundError,
    ReportsCancelledError,
    ReportsError,
    ReportUnavailableError,
    ReportValidationError,
)

logger = get_logger(__name__)


class SummaryResult(DashboardBaseModel):
    """Outcome of a summary fan-out."""

    summaries: list[Summary] = Field(default_factory=list)
    reports: list[ReportMetadata] = Field(
        default_factory=list,
        description="Modules that were available, in listing order",
    )
    errors: list[str] = Field(default_factory=list)


@dataclass
class _Outcome:
    """Per-module progress of a fan-out, readable even if the task was cancelled."""

    metadata: ReportMetadata
    available: bool = False
    summaries: list[Summary] | None = None
    error: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(metadata: ReportMetadata) -> tuple[int, str]:
    return (-int(metadata.priority), metadata.name)


class ReportManager:
    """Registry and orchestrator for report modules."""

    def __init__(
        self,
        cache: ReportCache | None = None,
        max_concurrency: int = 8,
        clock: Callable[[], datetime] | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._cache = cache or ReportCache()
        self._max_concurrency = max_concurrency
        self._clock = clock or _utcnow
        self._modules: dict[str, ReportModule] = {}
        self._lock = threading.RLock()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> ReportManager:
        return cls(
            cache=ReportCache.from_settings(settings.cache),
            max_concurrency=settings.reports.max_concurrency,
        )

    @property
    def cache(self) -> ReportCache:
        return self._cache

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, module: ReportModule) -> None:
        """Add a module to the registry.

        Raises:
            InvalidReportIdError: if the module id is empty
            DuplicateReportError: if the id is already registered
        """
        metadata = module.metadata()
        report_id = metadata.id
        if not report_id or not report_id.strip():
            raise InvalidReportIdError("report id must not be empty")

        with self._lock:
            if report_id in self._modules:
                raise DuplicateReportError(
                    f"report {report_id!r} is already registered",
                    report_id=report_id,
                )
            self._modules[report_id] = module

        logger.info(
            "Report module registered",
            report_id=report_id,
            name=metadata.name,
            kind=metadata.kind,
            priority=int(metadata.priority),
        )

    def unregister(self, report_id: str) -> None:
        """Remove a module and drop its cache entries."""
        with self._lock:
            if report_id not in self._modules:
                raise ReportNotFoundError(f"report {report_id!r} not found", report_id=report_id)
            del self._modules[report_id]
            # Under the table lock so no in-flight write-back can follow it
            self._cache.invalidate(report_id)

        logger.info("Report module unregistered", report_id=report_id)

    def get(self, report_id: str) -> ReportModule:
        with self._lock:
            module = self._modules.get(report_id)
        if module is None:
            raise ReportNotFoundError(f"report {report_id!r} not found", report_id=report_id)
        return module

    def _snapshot(self, kind: ReportKind | str | None = None) -> list[tuple[ReportModule, ReportMetadata]]:
        """Registered modules in listing order: priority desc, name asc, insertion."""
        with self._lock:
            modules = list(self._modules.values())

        entries = [(module, module.metadata()) for module in modules]
        if kind is not None:
            kind = ReportKind(kind)
            entries = [entry for entry in entries if entry[1].kind == kind]
        # sorted() is stable, so equal keys keep insertion order
        return sorted(entries, key=lambda entry: _sort_key(entry[1]))

    def list(self, kind: ReportKind | str | None = None) -> list[ReportMetadata]:
        """Metadata of every registered module, optionally of one kind."""
        return [metadata for _, metadata in self._snapshot(kind)]

    async def list_available(self, timeout: float | None = None) -> list[ReportMetadata]:
        """Metadata of modules whose availability probe currently succeeds.

        Each module is probed once, concurrently.

        Raises:
            ReportsCancelledError: if the timeout expires; partial holds the
                modules confirmed available so far
        """
        entries = self._snapshot()
        semaphore = asyncio.Semaphore(self._max_concurrency)
        tasks = [asyncio.create_task(self._probe(module, metadata, semaphore)) for module, metadata in entries]

        pending = await self._wait(tasks, timeout)

        available = [
            metadata
            for (_, metadata), task in zip(entries, tasks)
            if task not in pending and not task.cancelled() and task.result()
        ]
        if pending:
            raise ReportsCancelledError(
                "listing cancelled before all availability probes finished",
                partial=available,
            )
        return available

    # ------------------------------------------------------------------
    # Summary fan-out
    # ------------------------------------------------------------------

    async def summaries(self, params: ReportParams, timeout: float | None = None) -> list[Summary]:
        """Summaries of every available module, concatenated in listing order."""
        result = await self.summarise(params, timeout=timeout)
        return result.summaries

    async def summarise(self, params: ReportParams, timeout: float | None = None) -> SummaryResult:
        """Fan out summary generation across available modules.

        Module failures are logged and skipped. Cached and fresh results are
        concatenated in listing order, so identical cache state gives
        identical output.

        Raises:
            AllReportsFailedError: if no considered module succeeded
            ReportsCancelledError: if the timeout expires; partial holds the
                summaries gathered so far
        """
        entries = self._snapshot()
        semaphore = asyncio.Semaphore(self._max_concurrency)
        outcomes = [_Outcome(metadata=metadata) for _, metadata in entries]
        tasks = [
            asyncio.create_task(self._module_summaries(module, outcome, params, semaphore))
            for (module, _), outcome in zip(entries, outcomes)
        ]

        pending = await self._wait(tasks, timeout)

        result = SummaryResult()
        succeeded = 0
        for outcome in outcomes:
            if outcome.available:
                result.reports.append(outcome.metadata)
            if outcome.error is not None:
                result.errors.append(outcome.error)
            elif outcome.summaries is not None:
                result.summaries.extend(outcome.summaries)
                succeeded += 1

        if pending:
            raise ReportsCancelledError(
                "summary generation cancelled before all modules finished",
                partial=result.summaries,
                errors=result.errors,
            )
        if result.errors and succeeded == 0:
            raise AllReportsFailedError(result.errors)
        if result.errors:
            logger.warning(
                "Some report modules failed",
                failed=len(result.errors),
                succeeded=succeeded,
            )
        return result

    async def _module_summaries(
        self,
        module: ReportModule,
        outcome: _Outcome,
        params: ReportParams,
        semaphore: asyncio.Semaphore,
    ) -> None:
        metadata = outcome.metadata
        if not await self._probe(module, metadata, semaphore):
            return
        outcome.available = True

        if params.use_cache and not params.force_refresh:
            cached = self._cache.get_summary(metadata.id, params)
            if cached is not None:
                outcome.summaries = cached
                return

        try:
            async with semaphore:
                summaries = list(await module.summaries(params))
        except Exception as e:
            outcome.error = f"{metadata.name}: {e}"
            logger.warning(
                "Failed to generate summaries",
                report_id=metadata.id,
                error=str(e),
            )
            return

        if params.use_cache:
            ttl = self._ttl_for(module, params)
            self._write_back(
                module,
                metadata.id,
                lambda: self._cache.set_summary(metadata.id, params, summaries, ttl),
            )
        outcome.summaries = summaries

    # ------------------------------------------------------------------
    # Single report
    # ------------------------------------------------------------------

    async def report(
        self,
        report_id: str,
        params: ReportParams,
        timeout: float | None = None,
    ) -> ReportData:
        """Generate, or serve from cache, the full report of one module.

        Errors embedded in the returned payload are not raised.

        Raises:
            ReportNotFoundError: unknown id
            ReportUnavailableError: module probe returned false
            ReportValidationError: module rejected params
            ReportsCancelledError: timeout expired
            ReportsError: module raised instead of returning a payload
        """
        module = self.get(report_id)
        metadata = module.metadata()
        try:
            return await asyncio.wait_for(self._report(module, metadata, params), timeout)
        except asyncio.TimeoutError:
            raise ReportsCancelledError(
                f"report {report_id!r} timed out",
                report_id=report_id,
            ) from None

    async def _report(
        self,
        module: ReportModule,
        metadata: ReportMetadata,
        params: ReportParams,
    ) -> ReportData:
        report_id = metadata.id
        if not await self._probe(module, metadata):
            raise ReportUnavailableError(f"report {report_id!r} is not available", report_id=report_id)

        try:
            module.validate(params)
        except ReportValidationError:
            raise
        except ValueError as e:
            raise ReportValidationError(str(e), report_id=report_id) from e

        if params.use_cache and not params.force_refresh:
            cached = self._cache.get_report(report_id, params)
            if cached is not None:
                logger.debug("Serving cached report", report_id=report_id)
                return cached.model_copy(update={"metadata": metadata, "status": ReportStatus.CACHED})

        logger.info("Generating report", report_id=report_id)
        try:
            data = await module.report(params)
        except ReportsError:
            raise
        except Exception as e:
            logger.error("Report generation failed", report_id=report_id, error=str(e))
            raise ReportsError(f"failed to generate report {report_id!r}: {e}", report_id=report_id) from e

        data = data.model_copy(update={"metadata": metadata, "generated_at": self._clock()})

        if params.use_cache and data.status != ReportStatus.FAILED:
            ttl = self._ttl_for(module, params)
            self._write_back(module, report_id, lambda: self._cache.set_report(report_id, params, data, ttl))

        logger.info(
            "Report generated successfully",
            report_id=report_id,
            status=data.status,
            errors=len(data.errors),
            warnings=len(data.warnings),
        )
        return data

    # ------------------------------------------------------------------
    # Cache and lifecycle
    # ------------------------------------------------------------------

    def refresh_cache(self) -> None:
        self._cache.clear()
        logger.info("Report cache cleared")

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def start(self) -> None:
        """Start background cache maintenance; needs a running event loop."""
        self._cache.start()

    async def shutdown(self) -> None:
        """Clear the cache and stop the reaper. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down report manager")
        self._cache.clear()
        await self._cache.stop()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ttl_for(self, module: ReportModule, params: ReportParams) -> timedelta:
        """Request override, then the module's refresh interval, then the cache default."""
        if params.cache_ttl is not None and params.cache_ttl > timedelta(0):
            return params.cache_ttl
        interval = module.refresh_interval()
        if interval > timedelta(0):
            return interval
        return self._cache.default_ttl

    def _write_back(self, module: ReportModule, report_id: str, write: Callable[[], None]) -> None:
        """Run a cache write only if the module is still the registered one."""
        with self._lock:
            if self._modules.get(report_id) is module:
                write()

    @staticmethod
    async def _probe(
        module: ReportModule,
        metadata: ReportMetadata,
        semaphore: asyncio.Semaphore | None = None,
    ) -> bool:
        async with semaphore or contextlib.nullcontext():
            try:
                return bool(await module.available())
            except Exception as e:
                logger.warning("Availability probe failed", report_id=metadata.id, error=str(e))
                return False

    @staticmethod
    async def _wait(tasks: list[asyncio.Task], timeout: float | None) -> set[asyncio.Task]:
        """Wait for tasks up to timeout; cancel and return whatever is still pending."""
        if not tasks:
            return set()
        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return pending
