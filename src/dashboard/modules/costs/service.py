"""Cost aggregation and attribution of spend to catalogue applications."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from shared.models import Application, ReportParams
from shared.observability import get_logger

from ..filters import matches_application
from ..sources import ApplicationSource, CostSource
from .models import (
    ApplicationCost,
    CostAttribution,
    CostConfidence,
    CostItem,
    CostSummary,
    ServiceCost,
)

logger = get_logger(__name__)

SYSTEM_TAG = "system"

# Cost data older than this is treated as stale
RECENT_WINDOW = timedelta(days=60)


def system_tag_for(app: Application) -> str:
    """Value of the system tag an application's resources carry."""
    if app.shortname:
        return app.shortname
    return app.app_name.lower().replace(" ", "-").replace("_", "-")


def determine_confidence(items: list[CostItem], today: date) -> CostConfidence:
    if not items:
        return CostConfidence.NONE

    total = sum(item.amount for item in items)
    recent = any(item.end >= today - RECENT_WINDOW for item in items)
    if not recent or total == 0:
        return CostConfidence.LOW
    if len(items) >= 3 and total > 10:
        return CostConfidence.HIGH
    if total > 1:
        return CostConfidence.MEDIUM
    return CostConfidence.LOW


def summarise_costs(items: list[CostItem], start: date, end: date, currency: str) -> CostSummary:
    by_service: dict[str, float] = defaultdict(float)
    for item in items:
        by_service[item.service] += item.amount

    total = sum(by_service.values())
    services = [
        ServiceCost(
            service=service,
            amount=amount,
            percentage=(amount / total * 100) if total else 0.0,
        )
        for service, amount in sorted(by_service.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    if items:
        currency = items[0].currency

    return CostSummary(total=total, currency=currency, start=start, end=end, services=services)


class CostAnalysisService:
    """Fetches spend for a window and attributes it to applications."""

    def __init__(
        self,
        costs: CostSource,
        catalogue: ApplicationSource,
        currency: str = "GBP",
        clock: Callable[[], datetime] | None = None,
    ):
        self.costs = costs
        self.catalogue = catalogue
        self.currency = currency
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def today(self) -> date:
        return self._clock().date()

    def window(self, params: ReportParams) -> tuple[date, date]:
        """Reporting window as [start, end).

        Month to date by default. With only an end, the window opens on the
        first of the month holding the last reported day.
        """
        today = self.today()
        end = params.end_time.date() if params.end_time else today + timedelta(days=1)
        if params.start_time:
            start = params.start_time.date()
        else:
            start = (end - timedelta(days=1)).replace(day=1)
        return start, end

    async def cost_summary(self, params: ReportParams) -> CostSummary:
        start, end = self.window(params)
        items = await self.costs.get_costs(start, end)
        logger.debug("Fetched cost data", start=str(start), end=str(end), items=len(items))
        return summarise_costs(items, start, end, self.currency)

    async def previous_summary(self, current: CostSummary) -> CostSummary:
        """Spend in the window of equal length immediately before current."""
        length = current.end - current.start
        start = current.start - length
        items = await self.costs.get_costs(start, current.start)
        return summarise_costs(items, start, current.start, current.currency)

    async def application_costs(self, params: ReportParams) -> list[ApplicationCost]:
        """Attribute tagged spend to every catalogue application matching params."""
        start, end = self.window(params)
        applications = [app for app in await self.catalogue.list_applications() if matches_application(app, params)]
        tagged = await self.costs.get_costs_by_tag(SYSTEM_TAG, start, end)
        today = self.today()

        results = []
        for app in applications:
            tag = system_tag_for(app)
            items = tagged.get(tag, [])
            total = sum(item.amount for item in items)
            results.append(
                ApplicationCost(
                    name=app.app_name,
                    shortname=app.shortname,
                    team=app.team,
                    hosting=app.production_hosted_on,
                    system_tag=tag,
                    cost=total,
                    currency=items[0].currency if items else self.currency,
                    items=len(items),
                    confidence=determine_confidence(items, today),
                    source=CostAttribution.SYSTEM_TAG if items else CostAttribution.UNATTRIBUTED,
                )
            )

        attributed = sum(1 for result in results if result.items)
        logger.debug("Attributed application costs", applications=len(results), attributed=attributed)
        return results

    async def service_breakdown(self, app: Application, params: ReportParams) -> CostSummary:
        """Spend carrying an application's system tag, grouped by service."""
        start, end = self.window(params)
        tagged = await self.costs.get_costs_by_tag(SYSTEM_TAG, start, end)
        items = tagged.get(system_tag_for(app), [])
        logger.debug("Fetched application service costs", application=app.app_name, items=len(items))
        return summarise_costs(items, start, end, self.currency)
