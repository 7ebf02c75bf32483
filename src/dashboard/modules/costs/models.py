"""Cost report models."""

from datetime import date
from enum import Enum

from pydantic import Field

from shared.models import DashboardBaseModel


class CostItem(DashboardBaseModel):
    """Spend on one service over one billing interval."""

    service: str
    amount: float
    currency: str = "GBP"
    start: date
    end: date
    granularity: str = "MONTHLY"


class ServiceCost(DashboardBaseModel):
    service: str
    amount: float
    percentage: float


class CostSummary(DashboardBaseModel):
    """Spend in a window, broken down by service (largest first)."""

    total: float = 0.0
    currency: str = "GBP"
    start: date
    end: date
    services: list[ServiceCost] = Field(default_factory=list)

    @property
    def top_service(self) -> ServiceCost | None:
        return self.services[0] if self.services else None


class CostConfidence(str, Enum):
    """How much an application's attributed cost can be trusted."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class CostAttribution(str, Enum):
    SYSTEM_TAG = "system_tag"
    UNATTRIBUTED = "unattributed"


class ApplicationCost(DashboardBaseModel):
    """Cost attributed to one catalogue application."""

    name: str
    shortname: str = ""
    team: str = ""
    hosting: str = ""
    system_tag: str
    cost: float = 0.0
    currency: str = "GBP"
    items: int = 0
    confidence: CostConfidence = CostConfidence.NONE
    source: CostAttribution = CostAttribution.UNATTRIBUTED
