"""Shared Pydantic models for the reports dashboard.

This module exports all data models used by the service:
- Report framework: metadata, params, summaries, payloads
- Catalogue: applications and their links
- Common: error envelope and timestamps
"""

from .base import DashboardBaseModel
from .catalogue import Application, ApplicationLinks
from .common import ErrorResponse, GeneratedAt
from .reports import (
    ChartBlock,
    ChartPoint,
    ChartSeries,
    DataPoint,
    Priority,
    ReportData,
    ReportIssue,
    ReportKind,
    ReportMetadata,
    ReportParams,
    ReportStatus,
    Summary,
    SummaryKind,
    TableBlock,
    TableHeader,
    TrendData,
    TrendDirection,
)

__all__ = [
    # Base
    "DashboardBaseModel",
    # Common
    "ErrorResponse",
    "GeneratedAt",
    # Catalogue
    "Application",
    "ApplicationLinks",
    # Reports
    "ChartBlock",
    "ChartPoint",
    "ChartSeries",
    "DataPoint",
    "Priority",
    "ReportData",
    "ReportIssue",
    "ReportKind",
    "ReportMetadata",
    "ReportParams",
    "ReportStatus",
    "Summary",
    "SummaryKind",
    "TableBlock",
    "TableHeader",
    "TrendData",
    "TrendDirection",
]
