"""Unit tests for the report manager."""

import asyncio
import itertools
from datetime import timedelta

import pytest

from dashboard.reports import (
    AllReportsFailedError,
    DuplicateReportError,
    InvalidReportIdError,
    ReportCache,
    ReportManager,
    ReportNotFoundError,
    ReportsCancelledError,
    ReportsError,
    ReportUnavailableError,
    ReportValidationError,
)
from shared.models import Priority, ReportKind, ReportParams, ReportStatus, Summary


@pytest.fixture
def manager(clock) -> ReportManager:
    return ReportManager(cache=ReportCache(clock=clock), clock=clock)


class TestRegistry:
    """Test module registration and listing."""

    def test_list_orders_by_priority_then_name(self, manager, make_module) -> None:
        """Test listing is by priority then name."""
        manager.register(make_module("A", name="B", priority=Priority.HIGH))
        manager.register(make_module("B", name="A", priority=Priority.HIGH))
        manager.register(make_module("C", name="Z", priority=Priority.MEDIUM))

        assert [metadata.id for metadata in manager.list()] == ["B", "A", "C"]

    def test_list_order_ignores_registration_order(self, make_module) -> None:
        """Test listing order does not depend on registration order."""
        entries = [
            ("low", "Low", Priority.LOW),
            ("crit", "Critical", Priority.CRITICAL),
            ("alpha", "Alpha", Priority.MEDIUM),
            ("beta", "Beta", Priority.MEDIUM),
        ]
        orders = set()
        for permutation in itertools.permutations(entries):
            manager = ReportManager()
            for report_id, name, priority in permutation:
                manager.register(make_module(report_id, name=name, priority=priority))
            orders.add(tuple(metadata.id for metadata in manager.list()))

        assert orders == {("crit", "alpha", "beta", "low")}

    def test_list_by_kind(self, manager, make_module) -> None:
        """Test listing one kind of report."""
        manager.register(make_module("costs", kind=ReportKind.COST))
        manager.register(make_module("rds", kind=ReportKind.HEALTH))

        assert [metadata.id for metadata in manager.list(ReportKind.HEALTH)] == ["rds"]

    def test_duplicate_registration(self, manager, make_module) -> None:
        """Test a duplicate id is rejected and the first module kept."""
        module = make_module("m1")
        manager.register(module)

        with pytest.raises(DuplicateReportError):
            manager.register(module)
        assert [metadata.id for metadata in manager.list()] == ["m1"]

    @pytest.mark.parametrize("report_id", ["", "   "])
    def test_empty_id_rejected(self, manager, make_module, report_id) -> None:
        """Test blank ids are rejected."""
        with pytest.raises(InvalidReportIdError):
            manager.register(make_module(report_id, name="nameless"))

    def test_register_unregister_register(self, manager, make_module) -> None:
        """Test an id can be reused after unregistering."""
        module = make_module("m1")

        manager.register(module)
        manager.unregister("m1")
        manager.register(module)

        assert manager.get("m1") is module

    def test_unregister_unknown(self, manager) -> None:
        """Test unregistering an unknown id."""
        with pytest.raises(ReportNotFoundError):
            manager.unregister("missing")

    def test_get_unknown(self, manager) -> None:
        """Test getting an unknown id."""
        with pytest.raises(ReportNotFoundError):
            manager.get("missing")

    def test_invalid_concurrency(self) -> None:
        """Test concurrency below one is rejected."""
        with pytest.raises(ValueError):
            ReportManager(max_concurrency=0)


class TestListAvailable:
    @pytest.mark.asyncio
    async def test_unavailable_modules_are_skipped(self, manager, make_module) -> None:
        """Test modules whose availability check fails or is negative are left out."""
        available = make_module("m1")
        unavailable = make_module("m2", available=False)
        broken = make_module("m3", available=RuntimeError("health check exploded"))
        for module in (available, unavailable, broken):
            manager.register(module)

        reports = await manager.list_available()

        assert [metadata.id for metadata in reports] == ["m1"]
        assert (available.probe_calls, unavailable.probe_calls, broken.probe_calls) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_empty_registry(self, manager) -> None:
        """No modules means an empty listing, not an error."""
        assert await manager.list_available() == []

    @pytest.mark.asyncio
    async def test_timeout_returns_modules_confirmed_so_far(self, manager, make_module) -> None:
        """Modules still checking availability at the deadline are left out of the partial listing."""
        manager.register(make_module("fast"))
        manager.register(make_module("slow", availability_delay=5))

        with pytest.raises(ReportsCancelledError) as exc_info:
            await manager.list_available(timeout=0.1)

        assert [metadata.id for metadata in exc_info.value.partial] == ["fast"]

    @pytest.mark.asyncio
    async def test_order_ignores_registration_order(self, make_module) -> None:
        """Available modules come back by priority then name whatever the registration order."""
        entries = [
            ("low", "Low", Priority.LOW),
            ("crit", "Critical", Priority.CRITICAL),
            ("alpha", "Alpha", Priority.MEDIUM),
            ("beta", "Beta", Priority.MEDIUM),
            ("down", "Down", Priority.HIGH),
        ]
        orders = set()
        for permutation in itertools.permutations(entries):
            manager = ReportManager()
            for report_id, name, priority in permutation:
                manager.register(make_module(report_id, name=name, priority=priority, available=report_id != "down"))
            orders.add(tuple(metadata.id for metadata in await manager.list_available()))

        assert orders == {("crit", "alpha", "beta", "low")}


class TestSummaries:
    """Test the summary fan-out."""

    @pytest.mark.asyncio
    async def test_cache_hit_on_second_call(self, manager, make_module, cached_params) -> None:
        """Test the second summary call is served from cache."""
        module = make_module("m", summaries=[Summary(title="Spend", value="£100")])
        manager.register(module)

        first = await manager.summaries(cached_params)
        stats = manager.cache_stats()
        assert (stats.summary_misses, stats.summary_sets, stats.summary_hits) == (1, 1, 0)

        second = await manager.summaries(cached_params)
        stats = manager.cache_stats()

        assert second == first
        assert [card.value for card in second] == ["£100"]
        assert stats.summary_hits == 1
        assert module.summary_calls == 1

    @pytest.mark.asyncio
    async def test_force_refresh_skips_read_but_writes(self, manager, make_module, cached_params) -> None:
        """Test force refresh skips reads but still writes."""
        module = make_module("m")
        manager.register(module)
        await manager.summaries(cached_params)

        await manager.summaries(ReportParams(use_cache=True, force_refresh=True))
        stats = manager.cache_stats()

        assert module.summary_calls == 2
        assert stats.summary_hits == 0
        assert stats.summary_sets == 2

    @pytest.mark.asyncio
    async def test_without_cache_nothing_is_stored(self, manager, make_module) -> None:
        """Test nothing is stored with caching off."""
        module = make_module("m")
        manager.register(module)

        await manager.summaries(ReportParams())
        await manager.summaries(ReportParams())

        assert module.summary_calls == 2
        assert manager.cache_stats().summary_sets == 0

    @pytest.mark.asyncio
    async def test_unavailable_module_not_invoked(self, manager, make_module, cached_params) -> None:
        """Test unavailable modules are not asked for summaries."""
        m1 = make_module("m1", summaries=[Summary(title="one", value="1")])
        m2 = make_module("m2", available=False, summaries=[Summary(title="two", value="2")])
        manager.register(m1)
        manager.register(m2)

        result = await manager.summarise(cached_params)

        assert [card.title for card in result.summaries] == ["one"]
        assert [metadata.id for metadata in result.reports] == ["m1"]
        assert m2.summary_calls == 0

    @pytest.mark.asyncio
    async def test_partial_failure_is_recovered(self, manager, make_module, cached_params) -> None:
        """Test one failing module does not sink the rest."""
        manager.register(make_module("m1", summaries=[Summary(title="s1", value="1")]))
        manager.register(make_module("m2", name="Broken", error=RuntimeError("upstream down")))

        result = await manager.summarise(cached_params)

        assert [card.title for card in result.summaries] == ["s1"]
        assert result.errors == ["Broken: upstream down"]

    @pytest.mark.asyncio
    async def test_all_failed(self, manager, make_module, cached_params) -> None:
        """Test an error when every module failed."""
        manager.register(make_module("m1", error=RuntimeError("boom")))

        with pytest.raises(AllReportsFailedError) as exc_info:
            await manager.summaries(cached_params)
        assert exc_info.value.errors == ["m1: boom"]

    @pytest.mark.asyncio
    async def test_no_available_modules_is_empty_not_failure(self, manager, make_module, cached_params) -> None:
        """Test no available modules gives an empty result."""
        manager.register(make_module("m1", available=False))

        assert await manager.summaries(cached_params) == []

    @pytest.mark.asyncio
    async def test_results_follow_listing_order(self, manager, make_module, cached_params) -> None:
        """Test summaries come back in listing order."""
        manager.register(make_module("slow", name="A", priority=Priority.HIGH, delay=0.05))
        manager.register(make_module("fast", name="B", priority=Priority.HIGH))
        manager.register(make_module("low", name="C", priority=Priority.LOW))

        summaries = await manager.summaries(cached_params)

        assert [card.title for card in summaries] == ["slow", "fast", "low"]

    @pytest.mark.asyncio
    async def test_timeout_returns_partial_results(self, manager, make_module, cached_params) -> None:
        """Test the deadline returns what finished."""
        manager.register(make_module("fast", name="A"))
        manager.register(make_module("slow", name="B", delay=5))

        with pytest.raises(ReportsCancelledError) as exc_info:
            await manager.summaries(cached_params, timeout=0.1)

        assert [card.title for card in exc_info.value.partial] == ["fast"]


class TestCacheTTL:
    """Test how the manager chooses cache TTLs."""

    @pytest.mark.asyncio
    async def test_module_refresh_interval_is_used(self, manager, make_module, clock, cached_params) -> None:
        """Test the module refresh interval sets the TTL."""
        module = make_module("m", refresh=timedelta(minutes=2))
        manager.register(module)
        await manager.summaries(cached_params)

        clock.advance(minutes=1)
        await manager.summaries(cached_params)
        assert module.summary_calls == 1

        clock.advance(minutes=1)
        await manager.summaries(cached_params)
        assert module.summary_calls == 2

    @pytest.mark.asyncio
    async def test_request_ttl_overrides_module(self, manager, make_module, clock) -> None:
        """Test a request TTL overrides the module interval."""
        module = make_module("m", refresh=timedelta(hours=1))
        manager.register(module)
        params = ReportParams(use_cache=True, cache_ttl=timedelta(seconds=30))
        await manager.summaries(params)

        clock.advance(seconds=30)
        await manager.summaries(params)

        assert module.summary_calls == 2

    @pytest.mark.asyncio
    async def test_zero_refresh_interval_uses_cache_default(self, clock, make_module, cached_params) -> None:
        """Test a zero interval falls back to the cache default."""
        manager = ReportManager(cache=ReportCache(default_ttl=timedelta(minutes=10), clock=clock), clock=clock)
        module = make_module("m", refresh=timedelta(0))
        manager.register(module)
        await manager.summaries(cached_params)

        clock.advance(minutes=9)
        await manager.summaries(cached_params)
        assert module.summary_calls == 1

        clock.advance(minutes=1)
        await manager.summaries(cached_params)
        assert module.summary_calls == 2

    @pytest.mark.asyncio
    async def test_unregister_drops_cache_entries(self, manager, make_module, cached_params) -> None:
        """Test unregistering drops the module's cache entries."""
        manager.register(make_module("m"))
        await manager.summaries(cached_params)

        manager.unregister("m")
        manager.register(make_module("m"))
        await manager.summaries(cached_params)

        assert manager.cache_stats().summary_hits == 0


class TestReport:
    """Test single report generation."""

    @pytest.mark.asyncio
    async def test_not_found(self, manager) -> None:
        """Test an unknown report id."""
        with pytest.raises(ReportNotFoundError):
            await manager.report("missing", ReportParams())

    @pytest.mark.asyncio
    async def test_validation_error_does_not_touch_cache_or_module(self, manager, make_module) -> None:
        """Test rejected params never reach the cache or the module."""
        module = make_module("m1")
        manager.register(module)

        with pytest.raises(ReportValidationError):
            await manager.report("m1", ReportParams(limit=-1, use_cache=True))

        stats = manager.cache_stats()
        assert stats.report_hits + stats.report_misses == 0
        assert module.summary_calls == 0
        assert module.report_calls == 0

    @pytest.mark.asyncio
    async def test_unavailable(self, manager, make_module) -> None:
        """Test an unavailable module."""
        manager.register(make_module("m1", available=False))

        with pytest.raises(ReportUnavailableError):
            await manager.report("m1", ReportParams())

    @pytest.mark.asyncio
    async def test_metadata_and_generated_at_are_set(self, manager, make_module, clock) -> None:
        """Test metadata and generation time are stamped."""
        module = make_module("m1", name="Module One")
        manager.register(module)

        data = await manager.report("m1", ReportParams())

        assert data.metadata == module.metadata()
        assert data.generated_at == clock.now
        assert data.status == ReportStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cached_report(self, manager, make_module, cached_params) -> None:
        """Test a cached report is marked cached."""
        module = make_module("m1")
        manager.register(module)

        await manager.report("m1", cached_params)
        data = await manager.report("m1", cached_params)

        assert module.report_calls == 1
        assert data.status == ReportStatus.CACHED
        assert manager.cache_stats().report_hits == 1

    @pytest.mark.asyncio
    async def test_failed_report_is_returned_but_not_cached(self, manager, make_module, cached_params) -> None:
        """Test failed reports are returned but not cached."""
        module = make_module("m1", status=ReportStatus.FAILED)
        manager.register(module)

        data = await manager.report("m1", cached_params)
        await manager.report("m1", cached_params)

        assert data.status == ReportStatus.FAILED
        assert data.errors[0].code == "FETCH_ERROR"
        assert module.report_calls == 2
        assert manager.cache_stats().report_sets == 0

    @pytest.mark.asyncio
    async def test_module_exception_is_wrapped(self, manager, make_module) -> None:
        """Test module exceptions become framework errors."""
        manager.register(make_module("m1", error=RuntimeError("kaboom")))

        with pytest.raises(ReportsError) as exc_info:
            await manager.report("m1", ReportParams())
        assert exc_info.value.report_id == "m1"

    @pytest.mark.asyncio
    async def test_timeout(self, manager, make_module) -> None:
        """Test a slow report times out."""
        manager.register(make_module("m1", delay=5))

        with pytest.raises(ReportsCancelledError):
            await manager.report("m1", ReportParams(), timeout=0.05)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_refresh_cache(self, manager, make_module, cached_params) -> None:
        """Test refreshing empties the cache."""
        manager.register(make_module("m"))
        await manager.summaries(cached_params)

        manager.refresh_cache()

        assert manager.cache_stats().total_entries == 0

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, manager, make_module, cached_params) -> None:
        """Test shutting down twice."""
        manager.register(make_module("m"))
        manager.start()
        await manager.summaries(cached_params)

        await manager.shutdown()
        await manager.shutdown()

        assert not manager.cache.reaper_running
        assert manager.cache_stats().total_entries == 0

    @pytest.mark.asyncio
    async def test_concurrent_summaries_are_consistent(self, manager, make_module, cached_params) -> None:
        """Test concurrent fan-outs agree."""
        for n in range(5):
            manager.register(make_module(f"m{n}", delay=0.01))

        results = await asyncio.gather(*(manager.summaries(cached_params) for _ in range(10)))

        assert all(result == results[0] for result in results)
