"""PostgreSQL version checker report."""

from .report import METADATA, RDSReport
from .service import DatabaseVersionService, VersionPolicy

__all__ = ["METADATA", "DatabaseVersionService", "RDSReport", "VersionPolicy"]
