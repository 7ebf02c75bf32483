"""Cache inventory aggregation and pending service update selection."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timezone

from shared.models import ReportParams
from shared.observability import get_logger

from ..sources import CacheInventory
from .models import PatchingSummary, UpdateAction, UpdateSeverity

logger = get_logger(__name__)

# Update action statuses that need no further work
SETTLED_STATUSES = {"not-applicable", "complete"}

SEVERITY_ORDER = {
    UpdateSeverity.CRITICAL: 0,
    UpdateSeverity.IMPORTANT: 1,
    UpdateSeverity.MEDIUM: 2,
    UpdateSeverity.LOW: 3,
}


def is_pending(action: UpdateAction) -> bool:
    """An action is pending while its service update is offered and it is unsettled."""
    return action.service_update_status == "available" and action.status not in SETTLED_STATUSES


def is_overdue(action: UpdateAction, now: datetime) -> bool:
    return action.recommended_apply_by is not None and action.recommended_apply_by < now


class CachePatchingService:
    """Collects cache inventory and selects the update actions still to apply."""

    def __init__(
        self,
        inventory: CacheInventory,
        clock: Callable[[], datetime] | None = None,
    ):
        self.inventory = inventory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    async def summary(self, params: ReportParams) -> PatchingSummary:
        clusters, groups, serverless, actions = await asyncio.gather(
            self.inventory.list_clusters(),
            self.inventory.list_replication_groups(),
            self.inventory.list_serverless_caches(),
            self.inventory.list_update_actions(),
        )

        engine = str(params.filters.get("engine", "")).lower()
        if engine:
            clusters = [c for c in clusters if c.engine.lower() == engine]
            groups = [g for g in groups if g.engine.lower() == engine]
            serverless = [s for s in serverless if s.engine.lower() == engine]
            actions = [a for a in actions if not a.engine or a.engine.lower() == engine]

        pending = sorted(
            (action for action in actions if is_pending(action)),
            key=lambda a: (SEVERITY_ORDER[UpdateSeverity(a.severity)], a.target, a.service_update_name),
        )

        engines = Counter(cluster.engine.lower() for cluster in clusters)
        engines.update(cache.engine.lower() for cache in serverless)

        logger.debug(
            "Collected cache inventory",
            clusters=len(clusters),
            replication_groups=len(groups),
            serverless=len(serverless),
            pending_updates=len(pending),
        )
        return PatchingSummary(
            clusters=clusters,
            replication_groups=groups,
            serverless_caches=serverless,
            pending=pending,
            engines=dict(sorted(engines.items())),
        )
