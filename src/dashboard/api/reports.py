"""Report API endpoints.

Routes are thin: they turn query parameters into ReportParams, call the
manager and shape the JSON envelope. Framework errors are mapped to HTTP by
the handlers in errors.py.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field

from shared.models import (
    DashboardBaseModel,
    GeneratedAt,
    ReportData,
    ReportKind,
    ReportMetadata,
    ReportParams,
    Summary,
)
from shared.observability import get_logger

from ..reports import CacheStats, ReportManager, ReportValidationError

logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


# =============================================================================
# Response envelopes
# =============================================================================


class ReportListResponse(DashboardBaseModel):
    reports: list[ReportMetadata] = Field(default_factory=list)
    count: int = 0
    status: str = "success"


class SummaryResponse(DashboardBaseModel):
    summaries: list[Summary] = Field(default_factory=list)
    count: int = 0
    reports: list[ReportMetadata] = Field(default_factory=list)
    generated_at: GeneratedAt
    status: str = "success"


class CacheRefreshResponse(DashboardBaseModel):
    status: str = "success"
    message: str


# =============================================================================
# Dependencies
# =============================================================================


def get_report_manager(request: Request) -> ReportManager:
    return request.app.state.report_manager


def get_timeout(request: Request) -> float:
    return request.app.state.settings.reports.timeout_seconds


def split_values(values: list[str]) -> list[str]:
    """Flatten repeated and comma separated query values."""
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def parse_filters(values: list[str]) -> dict[str, str]:
    filters = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise ReportValidationError(f"filter {value!r} must be in key=value form")
        filters[key.strip()] = item.strip()
    return filters


def get_report_params(
    start_time: datetime | None = Query(None, description="Start of the reporting window (ISO 8601)"),
    end_time: datetime | None = Query(None, description="End of the reporting window (ISO 8601)"),
    applications: list[str] = Query(default=[], description="Application names, repeatable or comma separated"),
    teams: list[str] = Query(default=[], description="Owning teams, repeatable or comma separated"),
    environments: list[str] = Query(default=[], description="Environments, repeatable or comma separated"),
    filters: list[str] = Query(default=[], alias="filter", description="Module specific filter (key=value)"),
    group_by: list[str] = Query(default=[], description="Grouping fields"),
    sort_by: str = Query("", description="Sort field understood by the module"),
    sort_order: str = Query("", description="asc or desc"),
    limit: int = Query(0, description="Maximum rows per table; 0 means no limit"),
    offset: int = Query(0, description="Rows to skip"),
    output_format: str = Query("", alias="format", description="Output format hint"),
    use_cache: bool = Query(True, description="Read and write the report cache"),
    force_refresh: bool = Query(False, description="Skip cache reads but still write fresh results"),
    cache_ttl: int | None = Query(None, ge=1, description="Cache TTL override in seconds"),
) -> ReportParams:
    return ReportParams(
        start_time=start_time,
        end_time=end_time,
        applications=split_values(applications),
        teams=split_values(teams),
        environments=split_values(environments),
        filters=parse_filters(filters),
        group_by=split_values(group_by),
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
        format=output_format,
        use_cache=use_cache,
        force_refresh=force_refresh,
        cache_ttl=timedelta(seconds=cache_ttl) if cache_ttl else None,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get(
    "/list",
    response_model=ReportListResponse,
    summary="List available reports",
    description="Metadata of every registered report whose data source is reachable.",
)
async def list_reports(
    kind: ReportKind | None = Query(None, description="Only reports of this kind"),
    manager: ReportManager = Depends(get_report_manager),
    timeout: float = Depends(get_timeout),
):
    reports = await manager.list_available(timeout=timeout)
    if kind is not None:
        reports = [metadata for metadata in reports if metadata.kind == ReportKind(kind)]
    return ReportListResponse(reports=reports, count=len(reports))


@router.get(
    "/summary",
    response_model=SummaryResponse,
    summary="Dashboard summary",
    description="Summary cards from every available report, in listing order.",
)
async def get_summary(
    params: ReportParams = Depends(get_report_params),
    manager: ReportManager = Depends(get_report_manager),
    timeout: float = Depends(get_timeout),
):
    result = await manager.summarise(params, timeout=timeout)
    if result.errors:
        logger.info("Summary served with module failures", failed=len(result.errors))

    return SummaryResponse(
        summaries=result.summaries,
        count=len(result.summaries),
        reports=result.reports,
        generated_at=GeneratedAt(timestamp=datetime.now(timezone.utc)),
    )


@router.get(
    "/cache/stats",
    response_model=CacheStats,
    summary="Report cache statistics",
)
async def cache_stats(manager: ReportManager = Depends(get_report_manager)):
    return manager.cache_stats()


@router.post(
    "/cache/refresh",
    response_model=CacheRefreshResponse,
    summary="Clear the report cache",
    description="Drops every cached summary and report; counters are kept.",
)
async def refresh_cache(manager: ReportManager = Depends(get_report_manager)):
    manager.refresh_cache()
    return CacheRefreshResponse(message="report cache cleared")


@router.get(
    "/{report_id}",
    response_model=ReportData,
    summary="Get a report",
    description="Full structured report of one module.",
)
async def get_report(
    report_id: str,
    params: ReportParams = Depends(get_report_params),
    manager: ReportManager = Depends(get_report_manager),
    timeout: float = Depends(get_timeout),
):
    return await manager.report(report_id, params, timeout=timeout)
