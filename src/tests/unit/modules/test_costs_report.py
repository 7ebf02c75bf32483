"""Tests for the cost analysis report module."""

from datetime import date, datetime, timezone

import pytest

from dashboard.modules.costs import CostAnalysisService, CostReport
from dashboard.modules.costs.models import CostAttribution, CostConfidence, CostItem
from dashboard.modules.costs.service import determine_confidence, summarise_costs, system_tag_for
from dashboard.reports import ReportValidationError
from shared.models import Application, ReportParams, ReportStatus, SummaryKind, TrendDirection

JUNE = date(2025, 6, 1)


def item(service: str, amount: float, start: date = JUNE, end: date = date(2025, 6, 16)) -> CostItem:
    return CostItem(service=service, amount=amount, start=start, end=end)


class FakeCostSource:
    def __init__(self, current=None, previous=None, tagged=None, error=None):
        self.current = current if current is not None else [item("EC2", 100.0), item("S3", 50.0)]
        self.previous = previous if previous is not None else [item("EC2", 100.0, date(2025, 5, 17), JUNE)]
        self.tagged = tagged if tagged is not None else {"publishing-api": [item("EC2", 80.0)]}
        self.error = error
        self.windows: list[tuple[date, date]] = []

    async def get_costs(self, start, end):
        self.windows.append((start, end))
        if self.error:
            raise self.error
        return self.current if start == JUNE else self.previous

    async def get_costs_by_tag(self, tag_key, start, end):
        assert tag_key == "system"
        return self.tagged

    async def ping(self):
        return True


class FakeCatalogue:
    def __init__(self, applications=None, error=None):
        self.applications = applications or [
            Application(app_name="Publishing API", shortname="publishing-api", team="#publishing"),
            Application(app_name="Router", shortname="", team="#routing"),
        ]
        self.error = error

    async def list_applications(self):
        if self.error:
            raise self.error
        return self.applications

    async def ping(self):
        return self.error is None


@pytest.fixture
def costs():
    return FakeCostSource()


@pytest.fixture
def catalogue():
    return FakeCatalogue()


@pytest.fixture
def report(costs, catalogue, clock):
    return CostReport(costs, catalogue, currency="GBP", clock=clock)


class TestCostHelpers:
    def test_summarise_costs_orders_services(self):
        """Test services are ordered by spend."""
        summary = summarise_costs([item("S3", 50.0), item("EC2", 100.0), item("S3", 25.0)], JUNE, JUNE, "GBP")

        assert summary.total == 175.0
        assert [service.service for service in summary.services] == ["EC2", "S3"]
        assert summary.top_service.amount == 100.0

    def test_empty_summary(self):
        """Test an empty window keeps the default currency."""
        summary = summarise_costs([], JUNE, JUNE, "USD")

        assert summary.total == 0
        assert summary.top_service is None
        assert summary.currency == "USD"

    def test_system_tag_falls_back_to_name(self):
        """Test the system tag falls back to the slugged name."""
        assert system_tag_for(Application(app_name="Content Store", shortname="")) == "content-store"
        assert system_tag_for(Application(app_name="Router", shortname="router-app")) == "router-app"

    @pytest.mark.parametrize(
        "items,expected",
        [
            ([], CostConfidence.NONE),
            ([item("EC2", 0.5)], CostConfidence.LOW),
            ([item("EC2", 5.0)], CostConfidence.MEDIUM),
            ([item("EC2", 5.0), item("S3", 5.0), item("RDS", 5.0)], CostConfidence.HIGH),
            ([item("EC2", 50.0, date(2024, 1, 1), date(2024, 2, 1))], CostConfidence.LOW),
        ],
    )
    def test_determine_confidence(self, items, expected):
        """Test attribution confidence levels."""
        assert determine_confidence(items, date(2025, 6, 15)) == expected


class TestCostService:
    def test_default_window_is_month_to_date(self, costs, catalogue, clock):
        """Test the default window is month to date."""
        service = CostAnalysisService(costs, catalogue, clock=clock)

        assert service.window(ReportParams()) == (JUNE, date(2025, 6, 16))

    @pytest.mark.asyncio
    async def test_previous_window_has_equal_length(self, costs, catalogue, clock):
        """Test the comparison window has the same length."""
        service = CostAnalysisService(costs, catalogue, clock=clock)

        current = await service.cost_summary(ReportParams())
        await service.previous_summary(current)

        assert costs.windows[-1] == (date(2025, 5, 17), JUNE)

    @pytest.mark.asyncio
    async def test_end_only_window_opens_in_end_month(self, costs, catalogue, clock):
        """An end before this month still gives forward windows."""
        service = CostAnalysisService(costs, catalogue, clock=clock)

        current = await service.cost_summary(ReportParams(end_time=datetime(2025, 5, 20, tzinfo=timezone.utc)))
        await service.previous_summary(current)

        assert costs.windows == [
            (date(2025, 5, 1), date(2025, 5, 20)),
            (date(2025, 4, 12), date(2025, 5, 1)),
        ]

    def test_end_on_month_boundary_covers_previous_month(self, costs, catalogue, clock):
        """Test an end on the first of a month covers the month before."""
        service = CostAnalysisService(costs, catalogue, clock=clock)

        window = service.window(ReportParams(end_time=datetime(2025, 6, 1, tzinfo=timezone.utc)))

        assert window == (date(2025, 5, 1), JUNE)

    @pytest.mark.asyncio
    async def test_application_costs(self, costs, catalogue, clock):
        """Test tagged spend is attributed to applications."""
        service = CostAnalysisService(costs, catalogue, clock=clock)

        results = {cost.name: cost for cost in await service.application_costs(ReportParams())}

        assert results["Publishing API"].cost == 80.0
        assert results["Publishing API"].source == CostAttribution.SYSTEM_TAG
        assert results["Publishing API"].confidence == CostConfidence.MEDIUM
        assert results["Router"].cost == 0
        assert results["Router"].source == CostAttribution.UNATTRIBUTED
        assert results["Router"].system_tag == "router"

    @pytest.mark.asyncio
    async def test_application_filters(self, costs, catalogue, clock):
        """Test team filters apply to attribution."""
        service = CostAnalysisService(costs, catalogue, clock=clock)

        results = await service.application_costs(ReportParams(teams=["#ROUTING"]))

        assert [cost.name for cost in results] == ["Router"]


class TestCostReport:
    """Test summaries and the full cost report."""

    @pytest.mark.asyncio
    async def test_summaries(self, report):
        """Test the cost cards and trend."""
        cards = {card.title: card for card in await report.summaries(ReportParams())}

        total = cards["Total Monthly Cost"]
        assert total.value == "£150.00"
        assert total.kind == SummaryKind.CURRENCY
        assert total.trend.direction == TrendDirection.UP
        assert total.trend.value == "+50.0%"
        assert cards["Applications"].value == "2"
        assert cards["Average Cost"].value == "£75.00"
        assert cards["Top Service"].value == "EC2"

    @pytest.mark.asyncio
    async def test_summaries_without_catalogue(self, costs, clock):
        """Test cards without the catalogue."""
        report = CostReport(costs, FakeCatalogue(error=RuntimeError("down")), clock=clock)

        titles = [card.title for card in await report.summaries(ReportParams())]

        assert titles == ["Total Monthly Cost", "Top Service"]

    @pytest.mark.asyncio
    async def test_report(self, report):
        """Test the full cost report layout."""
        data = await report.report(ReportParams())

        assert data.status == ReportStatus.COMPLETED
        assert [chart.title for chart in data.charts] == ["Cost by Service", "Cost by Application"]
        table = data.tables[0]
        assert table.title == "Application Costs"
        assert [row["name"] for row in table.rows] == ["Publishing API", "Router"]
        assert table.rows[0]["cost"] == "£80.00"
        assert table.footer["cost"] == "£80.00"

    @pytest.mark.asyncio
    async def test_report_sorted_by_name_with_limit(self, report):
        """Test sorting applications by name with a limit."""
        data = await report.report(ReportParams(sort_by="name", sort_order="desc", limit=1))

        assert [row["name"] for row in data.tables[0].rows] == ["Router"]

    @pytest.mark.asyncio
    async def test_cost_failure_marks_report_failed(self, catalogue, clock):
        """Test a billing failure marks the report failed."""
        report = CostReport(FakeCostSource(error=RuntimeError("billing down")), catalogue, clock=clock)

        data = await report.report(ReportParams())

        assert data.status == ReportStatus.FAILED
        assert data.errors[0].code == "COST_FETCH_ERROR"

    @pytest.mark.asyncio
    async def test_catalogue_failure_is_a_warning(self, costs, clock):
        """Test a catalogue failure is only a warning."""
        report = CostReport(costs, FakeCatalogue(error=RuntimeError("catalogue down")), clock=clock)

        data = await report.report(ReportParams())

        assert data.status == ReportStatus.COMPLETED
        assert data.warnings[0].code == "APPLICATION_FETCH_ERROR"
        assert data.tables == []

    def test_validate(self, report):
        """Test params the cost module rejects."""
        report.validate(ReportParams(sort_by="cost"))

        with pytest.raises(ReportValidationError):
            report.validate(ReportParams(sort_by="region"))
        with pytest.raises(ReportValidationError):
            report.validate(ReportParams(limit=-1))

    def test_validate_rejects_start_after_today(self, report):
        """A start with no end must not run past the default end."""
        with pytest.raises(ReportValidationError):
            report.validate(ReportParams(start_time=datetime(2025, 7, 1, tzinfo=timezone.utc)))

    def test_metadata(self, report):
        """Test cost module metadata."""
        metadata = report.metadata()

        assert metadata.id == "costs"
        assert report.refresh_interval().total_seconds() == 900
