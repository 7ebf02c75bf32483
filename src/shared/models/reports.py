"""Report framework models.

Summaries, metadata and params are immutable value objects. ReportData is
assembled incrementally by modules and copied by the manager and cache.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import ConfigDict, Field, field_validator

from .base import DashboardBaseModel


class ReportKind(str, Enum):
    """Category of a report module."""

    COST = "cost"
    PERFORMANCE = "performance"
    HEALTH = "health"
    USAGE = "usage"
    CUSTOM = "custom"


class Priority(int, Enum):
    """Display priority; higher sorts first."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


class ReportStatus(str, Enum):
    """Lifecycle status of a ReportData payload."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CACHED = "cached"


class SummaryKind(str, Enum):
    """How a summary card should be presented."""

    METRIC = "metric"
    COUNT = "count"
    CURRENCY = "currency"
    HEALTH = "health"
    ALERT = "alert"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class TrendData(DashboardBaseModel):
    """Change of a value against a previous period."""

    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    value: str = Field(description="Displayed change, e.g. +10.0% or N/A")
    period: str = Field(description="Period label, e.g. vs last month")


class Summary(DashboardBaseModel):
    """A pre-formatted dashboard card."""

    model_config = ConfigDict(frozen=True)

    title: str
    value: str = Field(description="Displayed primary value")
    subtitle: str = ""
    trend: TrendData | None = None
    kind: SummaryKind = SummaryKind.METRIC
    healthy: bool = True

    def with_health(self, healthy: bool) -> "Summary":
        """Return a copy carrying the given health flag."""
        return self.model_copy(update={"healthy": healthy})


class ReportMetadata(DashboardBaseModel):
    """Static description of a report module."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    kind: ReportKind
    version: str = "1.0.0"
    author: str = ""
    tags: list[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM


class ReportParams(DashboardBaseModel):
    """Parameters for summary and report generation.

    Fields are deliberately unconstrained so that modules decide what is
    acceptable in their validate() hook.
    """

    model_config = ConfigDict(frozen=True)

    start_time: datetime | None = None
    end_time: datetime | None = None
    applications: list[str] = Field(default_factory=list)
    teams: list[str] = Field(default_factory=list)
    environments: list[str] = Field(default_factory=list)
    filters: dict[str, Any] = Field(default_factory=dict)
    group_by: list[str] = Field(default_factory=list)
    sort_by: str = ""
    sort_order: str = ""
    limit: int = 0
    offset: int = 0
    format: str = ""

    # Cache controls; never part of the cache key
    use_cache: bool = False
    force_refresh: bool = False
    cache_ttl: timedelta | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Naive times are UTC so windows always compare."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class DataPoint(DashboardBaseModel):
    """A single observation with labels and values."""

    timestamp: datetime
    labels: dict[str, str] = Field(default_factory=dict)
    values: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None


class ChartPoint(DashboardBaseModel):
    x: Any
    y: Any


class ChartSeries(DashboardBaseModel):
    name: str
    data: list[ChartPoint] = Field(default_factory=list)
    style: dict[str, Any] | None = None


class ChartBlock(DashboardBaseModel):
    """Chart definition rendered by the dashboard front end."""

    title: str
    kind: str = Field(description="bar, line, pie, ...")
    x_axis: str = ""
    y_axis: str = ""
    series: list[ChartSeries] = Field(default_factory=list)
    options: dict[str, Any] | None = None


class TableHeader(DashboardBaseModel):
    key: str
    label: str
    kind: str = "string"
    sortable: bool = True
    filterable: bool = True


class TableBlock(DashboardBaseModel):
    title: str
    headers: list[TableHeader] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    footer: dict[str, Any] | None = None


class ReportIssue(DashboardBaseModel):
    """An error or warning embedded in a report payload."""

    code: str
    message: str
    details: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReportData(DashboardBaseModel):
    """Full structured payload for one module at one point in time."""

    metadata: ReportMetadata | None = None
    status: ReportStatus = ReportStatus.PENDING
    generated_at: datetime | None = None
    data_points: list[DataPoint] = Field(default_factory=list)
    summaries: list[Summary] = Field(default_factory=list)
    charts: list[ChartBlock] = Field(default_factory=list)
    tables: list[TableBlock] = Field(default_factory=list)
    errors: list[ReportIssue] = Field(default_factory=list)
    warnings: list[ReportIssue] = Field(default_factory=list)

    def add_error(self, code: str, message: str, details: str = "") -> None:
        self.errors.append(ReportIssue(code=code, message=message, details=details))

    def add_warning(self, code: str, message: str, details: str = "") -> None:
        self.warnings.append(ReportIssue(code=code, message=message, details=details))
