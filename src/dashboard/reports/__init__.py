"""Reports framework: module contract, cache, renderer and manager."""

from .cache import CacheKind, CacheStats, ReportCache, make_cache_key
from .contract import ReportModule, paginate, validate_common_params
from .exceptions import (
    AllReportsFailedError,
    ApplicationNotFoundError,
    DuplicateReportError,
    InvalidReportIdError,
    ReportNotFoundError,
    ReportsCancelledError,
    ReportsError,
    ReportUnavailableError,
    ReportValidationError,
    sanitize_message,
)
from .manager import ReportManager, SummaryResult

__all__ = [
    # Manager
    "ReportManager",
    "SummaryResult",
    # Cache
    "CacheKind",
    "CacheStats",
    "ReportCache",
    "make_cache_key",
    # Contract
    "ReportModule",
    "paginate",
    "validate_common_params",
    # Errors
    "AllReportsFailedError",
    "ApplicationNotFoundError",
    "DuplicateReportError",
    "InvalidReportIdError",
    "ReportNotFoundError",
    "ReportsCancelledError",
    "ReportsError",
    "ReportUnavailableError",
    "ReportValidationError",
    "sanitize_message",
]
