"""ElastiCache patching report."""

from .report import METADATA, ElastiCacheReport
from .service import CachePatchingService

__all__ = ["METADATA", "CachePatchingService", "ElastiCacheReport"]
