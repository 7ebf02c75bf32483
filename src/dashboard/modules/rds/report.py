"""PostgreSQL version checker report module."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

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

from ...reports import ReportValidationError, paginate, renderer, validate_common_params
from ..sources import DatabaseInventory
from .models import InventorySummary, VersionCheck
from .service import DatabaseVersionService, VersionPolicy, version_tuple

logger = get_logger(__name__)

METADATA = ReportMetadata(
    id="rds",
    name="PostgreSQL Version Checker",
    description="Managed PostgreSQL instances checked against community support windows",
    kind=ReportKind.HEALTH,
    version="1.0.0",
    author="Platform Operations",
    tags=["rds", "postgresql", "versions", "compliance", "eol"],
    priority=Priority.MEDIUM,
)

SORT_FIELDS = ("", "instance_id", "application", "environment", "version")

# Compliance below this percentage marks the card unhealthy
COMPLIANCE_TARGET = 90.0

INSTANCE_COLUMNS = (
    "instance_id",
    "application",
    "environment",
    "version",
    "compliance",
    "recommended_action",
    "instance_class",
    "region",
)


def compliance_label(check: VersionCheck) -> str:
    if check.is_eol:
        return "End-of-Life"
    if check.is_outdated:
        return "Outdated"
    return "Compliant"


class RDSReport:
    """Version compliance of managed PostgreSQL instances."""

    def __init__(
        self,
        inventory: DatabaseInventory,
        policy: VersionPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.service = DatabaseVersionService(inventory, policy=policy, clock=clock)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def metadata(self) -> ReportMetadata:
        return METADATA

    async def available(self) -> bool:
        return await self.service.inventory.ping()

    def refresh_interval(self) -> timedelta:
        return timedelta(minutes=30)

    def validate(self, params: ReportParams) -> None:
        validate_common_params(params)
        if params.sort_by not in SORT_FIELDS:
            raise ReportValidationError(f"cannot sort instances by {params.sort_by!r}")

    async def summaries(self, params: ReportParams) -> list[Summary]:
        summary = await self.service.summary(params)
        return self._cards(summary)

    async def report(self, params: ReportParams) -> ReportData:
        data = ReportData(status=ReportStatus.RUNNING)

        try:
            summary = await self.service.summary(params)
        except Exception as e:
            logger.error("Failed to fetch database instances", error=str(e))
            data.add_error("RDS_FETCH_ERROR", "Failed to fetch PostgreSQL instances", str(e))
            data.status = ReportStatus.FAILED
            return data

        if summary.eol:
            data.add_warning(
                "VERSION_CHECK_WARNING",
                f"{summary.eol} instances run an end-of-life PostgreSQL version",
            )

        data.summaries = self._cards(summary)
        data.data_points = self._data_points(summary)
        data.charts = self._charts(summary)
        data.tables = [self._instances_table(summary, params), self._versions_table(summary)]
        data.status = ReportStatus.COMPLETED
        return data

    def _cards(self, summary: InventorySummary) -> list[Summary]:
        compliance = summary.compliance_percentage
        return [
            renderer.summary_card(
                "PostgreSQL Instances",
                renderer.format_number(summary.total),
                "Total managed instances",
                SummaryKind.COUNT,
            ),
            renderer.summary_card(
                "EOL Instances",
                renderer.format_number(summary.eol),
                "Running end-of-life versions",
                SummaryKind.ALERT,
                healthy=summary.eol == 0,
            ),
            renderer.summary_card(
                "Outdated Instances",
                renderer.format_number(summary.outdated),
                "Newer minor release available",
                SummaryKind.HEALTH,
                healthy=summary.outdated == 0,
            ),
            renderer.summary_card(
                "Version Compliance",
                renderer.format_percentage(compliance, 1),
                f"{summary.compliant} of {summary.total} compliant",
                SummaryKind.HEALTH,
                healthy=compliance >= COMPLIANCE_TARGET,
            ),
        ]

    def _data_points(self, summary: InventorySummary) -> list[DataPoint]:
        now = self._clock()
        points = [
            DataPoint(
                timestamp=now,
                labels={"type": "rds_summary", "source": "inventory"},
                values={
                    "total_instances": summary.total,
                    "eol_instances": summary.eol,
                    "outdated_instances": summary.outdated,
                    "compliant_instances": summary.compliant,
                },
            )
        ]
        for check in summary.checks:
            instance = check.instance
            points.append(
                DataPoint(
                    timestamp=now,
                    labels={
                        "type": "rds_instance",
                        "instance_id": instance.instance_id,
                        "application": instance.application,
                        "environment": instance.environment,
                        "region": instance.region,
                        "version": instance.version,
                        "major_version": check.major_version,
                    },
                    values={
                        "is_eol": check.is_eol,
                        "is_outdated": check.is_outdated,
                        "instance_class": instance.instance_class,
                        "storage_gb": instance.storage_gb,
                        "multi_az": instance.multi_az,
                    },
                )
            )
        for version in summary.versions:
            points.append(
                DataPoint(
                    timestamp=now,
                    labels={"type": "version_distribution", "major_version": version.major_version},
                    values={
                        "count": version.count,
                        "is_eol": version.is_eol,
                        "is_outdated": version.is_outdated,
                    },
                )
            )
        return points

    def _charts(self, summary: InventorySummary) -> list[ChartBlock]:
        charts = []
        if summary.versions:
            points = []
            for version in summary.versions:
                label = f"PostgreSQL {version.major_version}"
                if version.is_eol:
                    label += " (EOL)"
                elif version.is_outdated:
                    label += " (Outdated)"
                points.append(ChartPoint(x=label, y=version.count))
            charts.append(
                ChartBlock(
                    title="PostgreSQL Version Distribution",
                    kind="pie",
                    x_axis="version",
                    y_axis="count",
                    series=[ChartSeries(name="Instance Count", data=points)],
                )
            )

        charts.append(
            ChartBlock(
                title="Version Compliance Status",
                kind="bar",
                x_axis="status",
                y_axis="count",
                series=[
                    ChartSeries(
                        name="Instances",
                        data=[
                            ChartPoint(x="Compliant", y=summary.compliant),
                            ChartPoint(x="Outdated", y=summary.outdated),
                            ChartPoint(x="End-of-Life", y=summary.eol),
                        ],
                    )
                ],
            )
        )
        return charts

    def _instances_table(self, summary: InventorySummary, params: ReportParams) -> TableBlock:
        checks = list(summary.checks)
        if params.sort_by == "version":
            checks.sort(key=lambda c: version_tuple(c.instance.version))
        elif params.sort_by:
            checks.sort(key=lambda c: str(getattr(c.instance, params.sort_by)).lower())
        else:
            # Worst first
            checks.sort(key=lambda c: (not c.is_eol, not c.is_outdated, c.instance.instance_id))
        if params.sort_order.lower() == "desc":
            checks.reverse()

        rows = [
            {
                "instance_id": check.instance.instance_id,
                "application": check.instance.application,
                "environment": check.instance.environment,
                "version": check.instance.version,
                "compliance": compliance_label(check),
                "recommended_action": check.recommended_action,
                "instance_class": check.instance.instance_class,
                "region": check.instance.region,
            }
            for check in paginate(checks, params)
        ]

        return TableBlock(
            title="PostgreSQL Instances",
            headers=[TableHeader(key=key, label=renderer.format_column_name(key)) for key in INSTANCE_COLUMNS],
            rows=rows,
            footer={"instance_id": f"{summary.total} instances"},
        )

    def _versions_table(self, summary: InventorySummary) -> TableBlock:
        rows = []
        for version in summary.versions:
            status = "Supported"
            if version.is_eol:
                status = "End-of-Life"
            elif version.is_outdated:
                status = "Outdated"
            rows.append(
                {
                    "major_version": f"PostgreSQL {version.major_version}",
                    "count": version.count,
                    "status": status,
                }
            )

        return TableBlock(
            title="Version Summary",
            headers=[
                TableHeader(key="major_version", label="Major Version", filterable=False),
                TableHeader(key="count", label="Instance Count", kind="number", filterable=False),
                TableHeader(key="status", label="Status"),
            ],
            rows=rows,
        )
