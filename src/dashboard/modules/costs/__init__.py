"""Cost analysis report."""

from .report import METADATA, CostReport
from .service import CostAnalysisService

__all__ = ["METADATA", "CostAnalysisService", "CostReport"]
