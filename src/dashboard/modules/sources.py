"""Data contracts the report modules consume.

Concrete sources (cloud SDK wrappers, the catalogue client) live outside the
modules; anything with these coroutines can be plugged in.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from shared.models import Application

if TYPE_CHECKING:
    from .costs.models import CostItem
    from .elasticache.models import CacheCluster, ReplicationGroup, ServerlessCache, UpdateAction
    from .rds.models import DatabaseInstance


@runtime_checkable
class ApplicationSource(Protocol):
    """Application catalogue."""

    async def list_applications(self) -> list[Application]: ...

    async def ping(self) -> bool: ...


@runtime_checkable
class ApplicationDirectory(ApplicationSource, Protocol):
    """Application catalogue with lookups, as served by the applications API."""

    async def get_application(self, name: str) -> Application | None: ...

    async def list_by_team(self, team: str) -> list[Application]: ...

    async def list_by_hosting(self, platform: str) -> list[Application]: ...

    def clear_cache(self) -> None: ...


@runtime_checkable
class CostSource(Protocol):
    """Billing data for a date window; end is exclusive."""

    async def get_costs(self, start: date, end: date) -> list[CostItem]: ...

    async def get_costs_by_tag(self, tag_key: str, start: date, end: date) -> dict[str, list[CostItem]]:
        """Cost items grouped by the value of a resource tag."""
        ...

    async def ping(self) -> bool: ...


@runtime_checkable
class DatabaseInventory(Protocol):
    """Managed PostgreSQL instances."""

    async def list_instances(self) -> list[DatabaseInstance]: ...

    async def ping(self) -> bool: ...


@runtime_checkable
class CacheInventory(Protocol):
    """Managed cache clusters and their pending service updates."""

    async def list_clusters(self) -> list[CacheCluster]: ...

    async def list_replication_groups(self) -> list[ReplicationGroup]: ...

    async def list_serverless_caches(self) -> list[ServerlessCache]: ...

    async def list_update_actions(self) -> list[UpdateAction]: ...

    async def ping(self) -> bool: ...
