"""PostgreSQL version checker models."""

from datetime import date, datetime

from pydantic import Field

from shared.models import DashboardBaseModel


class DatabaseInstance(DashboardBaseModel):
    """A managed PostgreSQL instance as reported by the inventory."""

    instance_id: str
    engine: str = "postgres"
    version: str
    major_version: str = ""
    is_eol: bool = False
    eol_date: date | None = None
    instance_class: str = ""
    storage_gb: int = 0
    multi_az: bool = False
    region: str = ""
    created_at: datetime | None = None
    last_modified: datetime | None = None
    application: str = ""
    environment: str = ""


class VersionInfo(DashboardBaseModel):
    """Support window of one PostgreSQL major version."""

    major_version: str
    latest_version: str
    eol_date: date


class VersionCheck(DashboardBaseModel):
    """Outcome of checking one instance against the version policy."""

    instance: DatabaseInstance
    major_version: str
    is_eol: bool
    is_outdated: bool
    latest_version: str = ""
    eol_date: date | None = None
    recommended_action: str


class VersionSummary(DashboardBaseModel):
    major_version: str
    count: int
    is_eol: bool = False
    is_outdated: bool = False


class InventorySummary(DashboardBaseModel):
    """Version compliance across all instances."""

    total: int = 0
    eol: int = 0
    outdated: int = 0
    checks: list[VersionCheck] = Field(default_factory=list)
    versions: list[VersionSummary] = Field(default_factory=list)

    @property
    def compliant(self) -> int:
        return self.total - self.eol - self.outdated

    @property
    def compliance_percentage(self) -> float:
        if not self.total:
            return 100.0
        return self.compliant / self.total * 100
