"""Report modules and their wiring.

A module is only registered when every source it needs has been supplied.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.observability import get_logger

from ..reports import ReportManager, ReportModule
from .applications import ApplicationsReport
from .costs import CostReport
from .elasticache import ElastiCacheReport
from .rds import RDSReport
from .sources import ApplicationSource, CacheInventory, CostSource, DatabaseInventory

logger = get_logger(__name__)


@dataclass
class ReportSources:
    """Data sources available to this process."""

    catalogue: ApplicationSource | None = None
    costs: CostSource | None = None
    databases: DatabaseInventory | None = None
    caches: CacheInventory | None = None


def build_modules(sources: ReportSources, currency: str = "GBP") -> list[ReportModule]:
    modules: list[ReportModule] = []
    if sources.costs is not None and sources.catalogue is not None:
        modules.append(CostReport(sources.costs, sources.catalogue, currency=currency))
    if sources.databases is not None:
        modules.append(RDSReport(sources.databases))
    if sources.caches is not None:
        modules.append(ElastiCacheReport(sources.caches))
    if sources.catalogue is not None:
        modules.append(ApplicationsReport(sources.catalogue))
    return modules


def register_modules(manager: ReportManager, sources: ReportSources, currency: str = "GBP") -> list[str]:
    """Register every module the sources can back; returns the registered ids."""
    registered = []
    for module in build_modules(sources, currency=currency):
        manager.register(module)
        registered.append(module.metadata().id)

    if not registered:
        logger.warning("No report modules registered")
    return registered


__all__ = [
    "ApplicationsReport",
    "CostReport",
    "ElastiCacheReport",
    "RDSReport",
    "ReportSources",
    "build_modules",
    "register_modules",
]
