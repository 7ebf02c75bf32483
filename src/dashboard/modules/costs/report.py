"""Cost analysis report module."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from shared.models import (
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
from ..sources import ApplicationSource, CostSource
from .models import ApplicationCost, CostSummary
from .service import CostAnalysisService

logger = get_logger(__name__)

METADATA = ReportMetadata(
    id="costs",
    name="Cost Analysis",
    description="Cloud spend by service and by application",
    kind=ReportKind.COST,
    version="1.0.0",
    author="Platform Operations",
    tags=["aws", "costs", "billing", "applications"],
    priority=Priority.HIGH,
)

SORT_FIELDS = ("", "cost", "name")
TOP_APPLICATIONS = 10


class CostReport:
    """Spend for the reporting window, with a per-application breakdown."""

    def __init__(
        self,
        costs: CostSource,
        catalogue: ApplicationSource,
        currency: str = "GBP",
        clock: Callable[[], datetime] | None = None,
    ):
        self.service = CostAnalysisService(costs, catalogue, currency=currency, clock=clock)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def metadata(self) -> ReportMetadata:
        return METADATA

    async def available(self) -> bool:
        return await self.service.costs.ping()

    def refresh_interval(self) -> timedelta:
        return timedelta(minutes=15)

    def validate(self, params: ReportParams) -> None:
        validate_common_params(params)
        if params.sort_by not in SORT_FIELDS:
            raise ReportValidationError(f"cannot sort costs by {params.sort_by!r}")
        start, end = self.service.window(params)
        if start >= end:
            raise ReportValidationError(f"empty cost window {start} to {end}")

    async def summaries(self, params: ReportParams) -> list[Summary]:
        current = await self.service.cost_summary(params)
        previous = await self.service.previous_summary(current)

        try:
            applications = await self.service.application_costs(params)
        except Exception as e:
            logger.warning("Application costs unavailable", error=str(e))
            applications = None

        return self._cards(current, previous, applications)

    async def report(self, params: ReportParams) -> ReportData:
        data = ReportData(status=ReportStatus.RUNNING)

        try:
            current = await self.service.cost_summary(params)
            previous = await self.service.previous_summary(current)
        except Exception as e:
            logger.error("Failed to fetch cost data", error=str(e))
            data.add_error("COST_FETCH_ERROR", "Failed to fetch cost data", str(e))
            data.status = ReportStatus.FAILED
            return data

        try:
            applications = await self.service.application_costs(params)
        except Exception as e:
            logger.warning("Failed to attribute application costs", error=str(e))
            data.add_warning("APPLICATION_FETCH_ERROR", "Failed to fetch application costs", str(e))
            applications = None

        now = self._clock()
        data.summaries = self._cards(current, previous, applications)

        service_points = [
            DataPoint(
                timestamp=now,
                labels={"type": "service_cost", "service": item.service},
                values={"amount": round(item.amount, 2), "percentage": round(item.percentage, 1)},
            )
            for item in current.services
        ]
        data.data_points.extend(service_points)
        data.charts.append(renderer.build_chart("Cost by Service", "pie", service_points, "service", "amount"))

        if applications is not None:
            app_points = [
                DataPoint(
                    timestamp=now,
                    labels={
                        "type": "application_cost",
                        "application": app.name,
                        "team": app.team,
                        "hosting": app.hosting,
                    },
                    values={"cost": round(app.cost, 2)},
                )
                for app in sorted(applications, key=lambda app: (-app.cost, app.name))
            ]
            data.data_points.extend(app_points)
            data.charts.append(
                renderer.build_chart(
                    "Cost by Application",
                    "bar",
                    app_points[:TOP_APPLICATIONS],
                    "application",
                    "cost",
                )
            )
            data.tables.append(self._application_table(applications, params, current.currency))

        data.status = ReportStatus.COMPLETED
        return data

    def _cards(
        self,
        current: CostSummary,
        previous: CostSummary,
        applications: list[ApplicationCost] | None,
    ) -> list[Summary]:
        currency = current.currency
        cards = [
            renderer.summary_card(
                "Total Monthly Cost",
                renderer.format_currency(current.total, currency),
                f"{current.start.isoformat()} to {current.end.isoformat()}",
                SummaryKind.CURRENCY,
                trend_data=renderer.trend(current.total, previous.total, "vs previous period"),
            )
        ]

        if applications is not None:
            count = len(applications)
            average = current.total / count if count else 0.0
            cards.append(
                renderer.summary_card(
                    "Applications",
                    renderer.format_number(count),
                    "Tracked in the catalogue",
                    SummaryKind.COUNT,
                )
            )
            cards.append(
                renderer.summary_card(
                    "Average Cost",
                    renderer.format_currency(average, currency),
                    "Per application",
                    SummaryKind.CURRENCY,
                )
            )

        top = current.top_service
        if top is not None:
            cards.append(
                renderer.summary_card(
                    "Top Service",
                    top.service,
                    renderer.format_currency(top.amount, currency),
                    SummaryKind.METRIC,
                )
            )
        return cards

    def _application_table(
        self,
        applications: list[ApplicationCost],
        params: ReportParams,
        currency: str,
    ) -> TableBlock:
        descending = params.sort_order.lower() != "asc"
        if params.sort_by == "name":
            descending = params.sort_order.lower() == "desc"
            ordered = sorted(applications, key=lambda app: app.name.lower(), reverse=descending)
        else:
            ordered = sorted(applications, key=lambda app: app.cost, reverse=descending)

        rows = [
            {
                "name": app.name,
                "team": app.team,
                "hosting": app.hosting,
                "cost": renderer.format_currency(app.cost, app.currency),
                "confidence": app.confidence,
            }
            for app in paginate(ordered, params)
        ]

        return TableBlock(
            title="Application Costs",
            headers=[
                TableHeader(key="name", label="Application"),
                TableHeader(key="team", label="Team"),
                TableHeader(key="hosting", label="Hosting"),
                TableHeader(key="cost", label="Monthly Cost", kind="currency"),
                TableHeader(key="confidence", label="Confidence", filterable=False),
            ],
            rows=rows,
            footer={
                "name": f"{len(applications)} applications",
                "cost": renderer.format_currency(sum(app.cost for app in applications), currency),
            },
        )
