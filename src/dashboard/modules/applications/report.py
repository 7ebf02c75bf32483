"""Application catalogue report module.

Summarises who owns which application and where it is hosted. Backed only by
the public catalogue, so it is available wherever the catalogue is reachable.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from shared.models import (
    Application,
    DataPoint,
    Priority,
    ReportData,
    ReportKind,
    ReportMetadata,
    ReportParams,
    ReportStatus,
    Summary,
    SummaryKind,
)
from shared.observability import get_logger

from ...reports import ReportValidationError, paginate, renderer, validate_common_params
from ..filters import matches_application
from ..sources import ApplicationSource

logger = get_logger(__name__)

METADATA = ReportMetadata(
    id="applications",
    name="Application Catalogue",
    description="Applications by owning team and production hosting platform",
    kind=ReportKind.USAGE,
    version="1.0.0",
    author="Platform Operations",
    tags=["catalogue", "applications", "teams", "hosting"],
    priority=Priority.LOW,
)

SORT_FIELDS = ("", "app_name", "team", "hosting")
TABLE_COLUMNS = ["app_name", "team", "alerts_team", "hosting", "shortname"]
TOP_TEAMS = 10
UNKNOWN = "unknown"


def _by_name(app: Application) -> str:
    return app.app_name.lower()


SORT_KEYS = {
    "team": lambda app: (app.team.lower(), app.app_name.lower()),
    "hosting": lambda app: (app.production_hosted_on.lower(), app.app_name.lower()),
}


class ApplicationsReport:
    def __init__(
        self,
        catalogue: ApplicationSource,
        clock: Callable[[], datetime] | None = None,
    ):
        self.catalogue = catalogue
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def metadata(self) -> ReportMetadata:
        return METADATA

    async def available(self) -> bool:
        return await self.catalogue.ping()

    def refresh_interval(self) -> timedelta:
        return timedelta(minutes=15)

    def validate(self, params: ReportParams) -> None:
        validate_common_params(params)
        if params.sort_by not in SORT_FIELDS:
            raise ReportValidationError(f"cannot sort applications by {params.sort_by!r}")

    async def _applications(self, params: ReportParams) -> list[Application]:
        return [app for app in await self.catalogue.list_applications() if matches_application(app, params)]

    async def summaries(self, params: ReportParams) -> list[Summary]:
        return self._cards(await self._applications(params))

    async def report(self, params: ReportParams) -> ReportData:
        data = ReportData(status=ReportStatus.RUNNING)

        try:
            applications = await self._applications(params)
        except Exception as e:
            logger.error("Failed to fetch application catalogue", error=str(e))
            data.add_error("CATALOGUE_FETCH_ERROR", "Failed to fetch application catalogue", str(e))
            data.status = ReportStatus.FAILED
            return data

        unowned = [app.app_name for app in applications if not app.team]
        if unowned:
            data.add_warning(
                "UNOWNED_APPLICATIONS",
                f"{len(unowned)} applications have no owning team",
                ", ".join(sorted(unowned)),
            )

        now = self._clock()
        points = [
            DataPoint(
                timestamp=now,
                labels={
                    "type": "application",
                    "app_name": app.app_name,
                    "shortname": app.shortname,
                    "team": app.team or UNKNOWN,
                    "alerts_team": app.alerts_team,
                    "hosting": app.production_hosted_on or UNKNOWN,
                },
            )
            for app in self._sorted(applications, params)
        ]

        hosting = Counter(app.production_hosted_on or UNKNOWN for app in applications)
        teams = Counter(app.team or UNKNOWN for app in applications)
        totals = [
            DataPoint(timestamp=now, labels={"type": "hosting", "hosting": name}, values={"applications": count})
            for name, count in sorted(hosting.items())
        ]
        team_points = [
            DataPoint(timestamp=now, labels={"type": "team", "team": name}, values={"applications": count})
            for name, count in teams.most_common(TOP_TEAMS)
        ]

        data.summaries = self._cards(applications)
        data.data_points = points + totals + team_points
        data.charts = [
            renderer.build_chart("Applications by Hosting", "pie", totals, "hosting", "applications"),
            renderer.build_chart("Applications per Team", "bar", team_points, "team", "applications"),
        ]
        table = renderer.build_table("Applications", paginate(points, params), TABLE_COLUMNS)
        table.footer = {"app_name": f"{len(applications)} applications"}
        data.tables = [table]
        data.status = ReportStatus.COMPLETED
        return data

    def _sorted(self, applications: list[Application], params: ReportParams) -> list[Application]:
        key = SORT_KEYS.get(params.sort_by, _by_name)
        return sorted(applications, key=key, reverse=params.sort_order.lower() == "desc")

    def _cards(self, applications: list[Application]) -> list[Summary]:
        teams = {app.team for app in applications if app.team}
        platforms = {app.production_hosted_on for app in applications if app.production_hosted_on}
        unowned = sum(1 for app in applications if not app.team)
        return [
            renderer.summary_card(
                "Applications",
                renderer.format_number(len(applications)),
                "Listed in the catalogue",
                SummaryKind.COUNT,
            ),
            renderer.summary_card("Teams", renderer.format_number(len(teams)), "Owning teams", SummaryKind.COUNT),
            renderer.summary_card(
                "Hosting Platforms",
                renderer.format_number(len(platforms)),
                ", ".join(sorted(platforms)),
                SummaryKind.METRIC,
            ),
            renderer.summary_card(
                "Unowned Applications",
                renderer.format_number(unowned),
                "No owning team recorded",
                SummaryKind.ALERT,
                healthy=unowned == 0,
            ),
        ]
