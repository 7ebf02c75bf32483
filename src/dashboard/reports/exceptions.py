"""Report framework errors.

Each error carries the envelope code and HTTP status the API reports for it.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.models import ReportMetadata, Summary

_SENSITIVE = re.compile(r"\S*(?:password|token|key|secret|credential)\S*", re.IGNORECASE)

REDACTED = "[REDACTED]"


def sanitize_message(message: str) -> str:
    """Replace tokens that look like they carry secrets."""
    return _SENSITIVE.sub(REDACTED, message)


class ReportsError(Exception):
    """Base class for report framework failures."""

    code = "internal_server_error"
    status_code = 500

    def __init__(self, message: str, report_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.report_id = report_id


class InvalidReportIdError(ReportsError):
    """Raised when a module is registered with an empty id."""

    pass


class DuplicateReportError(ReportsError):
    """Raised when a module id is already registered."""

    pass


class ReportNotFoundError(ReportsError):
    """Raised when no module is registered under an id."""

    code = "not_found"
    status_code = 404


class ApplicationNotFoundError(ReportsError):
    """Raised when the catalogue has no application under a name."""

    code = "not_found"
    status_code = 404


class ReportUnavailableError(ReportsError):
    """Raised when a module's availability probe returns false."""

    code = "service_unavailable"
    status_code = 503


class ReportValidationError(ReportsError):
    """Raised when a module rejects the supplied params."""

    code = "bad_request"
    status_code = 400


class AllReportsFailedError(ReportsError):
    """Raised when a summary fan-out produced no usable module result."""

    def __init__(self, errors: list[str]):
        super().__init__(f"all reports failed: {errors}")
        self.errors = errors


class ReportsCancelledError(ReportsError):
    """Raised when a deadline expires mid-operation.

    partial holds whatever was gathered before the deadline: summaries for a
    summary fan-out, metadata for an availability listing.
    """

    def __init__(
        self,
        message: str,
        partial: list[Summary] | list[ReportMetadata] | None = None,
        errors: list[str] | None = None,
        report_id: str | None = None,
    ):
        super().__init__(message, report_id=report_id)
        self.partial = partial or []
        self.errors = errors or []
