"""The capability set every report module provides.

Modules are plain objects; anything with these methods can be registered.
Cancellation is task cancellation: a module awaiting I/O is interrupted with
asyncio.CancelledError and must not swallow it.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable

from shared.models import ReportData, ReportMetadata, ReportParams, Summary

from .exceptions import ReportValidationError

SORT_ORDERS = ("", "asc", "desc")


@runtime_checkable
class ReportModule(Protocol):
    def metadata(self) -> ReportMetadata:
        """Static description of the module; cheap and pure."""
        ...

    async def available(self) -> bool:
        """Whether upstream dependencies can currently be reached."""
        ...

    def refresh_interval(self) -> timedelta:
        """TTL for cached output; zero means use the cache default."""
        ...

    def validate(self, params: ReportParams) -> None:
        """Raise ReportValidationError for params that cannot be served."""
        ...

    async def summaries(self, params: ReportParams) -> list[Summary]:
        """Dashboard cards; raising marks this module as failed in a fan-out."""
        ...

    async def report(self, params: ReportParams) -> ReportData:
        """Full payload; upstream failures go into errors/warnings, not exceptions."""
        ...


def validate_common_params(params: ReportParams) -> None:
    """Checks shared by every module.

    Raises:
        ReportValidationError: for negative pagination, an inverted time
            window or an unknown sort order
    """
    if params.limit < 0:
        raise ReportValidationError("limit must not be negative")
    if params.offset < 0:
        raise ReportValidationError("offset must not be negative")
    if params.start_time and params.end_time and params.end_time < params.start_time:
        raise ReportValidationError("end_time must not be before start_time")
    if params.sort_order.lower() not in SORT_ORDERS:
        raise ReportValidationError(f"sort_order must be asc or desc, got {params.sort_order!r}")


def paginate(items: list, params: ReportParams) -> list:
    """Apply offset and limit (0 = no limit)."""
    items = items[params.offset :]
    if params.limit:
        items = items[: params.limit]
    return items
