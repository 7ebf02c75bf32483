"""Application catalogue report."""

from .report import METADATA, ApplicationsReport

__all__ = ["METADATA", "ApplicationsReport"]
