"""ElastiCache patching report module."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from shared.models import (
    ChartBlock,
    ChartPoint,
    ChartSeries,
    DataPoint,
    Priority,
    ReportData,
    ReportKind,
    ReportMetadata,
    ReportParams,
    ReportStatus,
    Summary,
    SummaryKind,
    TableBlock,
    TableHeader,
)
from shared.observability import get_logger

from ...reports import paginate, renderer, validate_common_params
from ..sources import CacheInventory
from .models import PatchingSummary, UpdateSeverity
from .service import CachePatchingService, is_overdue

logger = get_logger(__name__)

METADATA = ReportMetadata(
    id="elasticache",
    name="ElastiCache patching report",
    description="Cache clusters and the service updates waiting to be applied",
    kind=ReportKind.HEALTH,
    version="1.0.0",
    author="Platform Operations",
    tags=["elasticache", "redis", "valkey", "memcached", "versions", "patching"],
    priority=Priority.MEDIUM,
)


def _date(value: datetime | None) -> str:
    return value.strftime(renderer.TIMESTAMP_FORMAT) if value else ""


class ElastiCacheReport:
    """Pending service updates across cache clusters."""

    def __init__(
        self,
        inventory: CacheInventory,
        clock: Callable[[], datetime] | None = None,
    ):
        self.service = CachePatchingService(inventory, clock=clock)

    def metadata(self) -> ReportMetadata:
        return METADATA

    async def available(self) -> bool:
        return await self.service.inventory.ping()

    def refresh_interval(self) -> timedelta:
        return timedelta(minutes=30)

    def validate(self, params: ReportParams) -> None:
        validate_common_params(params)

    async def summaries(self, params: ReportParams) -> list[Summary]:
        return self._cards(await self.service.summary(params))

    async def report(self, params: ReportParams) -> ReportData:
        data = ReportData(status=ReportStatus.RUNNING)

        try:
            summary = await self.service.summary(params)
        except Exception as e:
            logger.error("Failed to fetch cache inventory", error=str(e))
            data.add_error("ELASTICACHE_FETCH_ERROR", "Failed to fetch ElastiCache inventory", str(e))
            data.status = ReportStatus.FAILED
            return data

        now = self.service.now()
        overdue = sum(1 for action in summary.pending if is_overdue(action, now))
        if overdue:
            data.add_warning(
                "UPDATE_OVERDUE",
                f"{overdue} updates are past their recommended apply-by date",
            )

        data.summaries = self._cards(summary)
        data.data_points = self._data_points(summary, now)
        data.charts = self._charts(summary)
        data.tables = [self._clusters_table(summary), self._updates_table(summary, params, now)]
        data.status = ReportStatus.COMPLETED
        return data

    def _cards(self, summary: PatchingSummary) -> list[Summary]:
        pending = len(summary.pending)
        critical = summary.count_severity(UpdateSeverity.CRITICAL)
        return [
            renderer.summary_card(
                "Cache Clusters",
                renderer.format_number(len(summary.clusters)),
                f"{len(summary.replication_groups)} replication groups",
                SummaryKind.COUNT,
            ),
            renderer.summary_card(
                "Serverless Caches",
                renderer.format_number(len(summary.serverless_caches)),
                "Managed without nodes",
                SummaryKind.COUNT,
            ),
            renderer.summary_card(
                "Pending Updates",
                renderer.format_number(pending),
                f"Across {summary.targets_with_updates} clusters and groups",
                SummaryKind.HEALTH,
                healthy=pending == 0,
            ),
            renderer.summary_card(
                "Critical Updates",
                renderer.format_number(critical),
                f"{summary.count_severity(UpdateSeverity.IMPORTANT)} important",
                SummaryKind.ALERT,
                healthy=critical == 0,
            ),
        ]

    def _data_points(self, summary: PatchingSummary, now: datetime) -> list[DataPoint]:
        points = [
            DataPoint(
                timestamp=now,
                labels={"type": "elasticache_summary"},
                values={
                    "clusters": len(summary.clusters),
                    "replication_groups": len(summary.replication_groups),
                    "standalone_clusters": summary.standalone_clusters,
                    "serverless_caches": len(summary.serverless_caches),
                    "pending_updates": len(summary.pending),
                },
            )
        ]
        points.extend(
            DataPoint(
                timestamp=now,
                labels={"type": "engine_distribution", "engine": engine},
                values={"count": count},
            )
            for engine, count in summary.engines.items()
        )
        return points

    def _charts(self, summary: PatchingSummary) -> list[ChartBlock]:
        charts = []
        if summary.engines:
            charts.append(
                ChartBlock(
                    title="Caches by Engine",
                    kind="pie",
                    x_axis="engine",
                    y_axis="count",
                    series=[
                        ChartSeries(
                            name="Caches",
                            data=[ChartPoint(x=engine, y=count) for engine, count in summary.engines.items()],
                        )
                    ],
                )
            )

        charts.append(
            ChartBlock(
                title="Pending Updates by Severity",
                kind="bar",
                x_axis="severity",
                y_axis="count",
                series=[
                    ChartSeries(
                        name="Updates",
                        data=[
                            ChartPoint(x=severity.value, y=summary.count_severity(severity))
                            for severity in UpdateSeverity
                        ],
                    )
                ],
            )
        )
        return charts

    def _clusters_table(self, summary: PatchingSummary) -> TableBlock:
        pending_by_target: dict[str, int] = {}
        for action in summary.pending:
            pending_by_target[action.target] = pending_by_target.get(action.target, 0) + 1

        rows = [
            {
                "cache_cluster_id": cluster.cache_cluster_id,
                "replication_group_id": cluster.replication_group_id,
                "engine": cluster.engine,
                "engine_version": cluster.engine_version,
                "cache_node_type": cluster.cache_node_type,
                "status": cluster.status,
                "pending_updates": pending_by_target.get(cluster.replication_group_id or cluster.cache_cluster_id, 0),
            }
            for cluster in sorted(summary.clusters, key=lambda c: c.cache_cluster_id)
        ]
        columns = [
            "cache_cluster_id",
            "replication_group_id",
            "engine",
            "engine_version",
            "cache_node_type",
            "status",
            "pending_updates",
        ]
        return TableBlock(
            title="Cache Clusters",
            headers=[
                TableHeader(
                    key=key,
                    label=renderer.format_column_name(key),
                    kind="number" if key == "pending_updates" else "string",
                )
                for key in columns
            ],
            rows=rows,
        )

    def _updates_table(self, summary: PatchingSummary, params: ReportParams, now: datetime) -> TableBlock:
        actions = list(summary.pending)
        if params.sort_order.lower() == "desc":
            actions.reverse()

        rows = [
            {
                "target": action.target,
                "service_update_name": action.service_update_name,
                "severity": action.severity,
                "status": action.status,
                "available_date": _date(action.available_date),
                "recommended_apply_by": _date(action.recommended_apply_by),
                "overdue": is_overdue(action, now),
            }
            for action in paginate(actions, params)
        ]
        return TableBlock(
            title="Pending Updates",
            headers=[
                TableHeader(key="target", label="Cluster or Group"),
                TableHeader(key="service_update_name", label="Service Update"),
                TableHeader(key="severity", label="Severity"),
                TableHeader(key="status", label="Status"),
                TableHeader(key="available_date", label="Available", kind="date"),
                TableHeader(key="recommended_apply_by", label="Apply By", kind="date"),
                TableHeader(key="overdue", label="Overdue", kind="boolean", filterable=False),
            ],
            rows=rows,
            footer={"target": f"{len(summary.pending)} pending updates"},
        )
