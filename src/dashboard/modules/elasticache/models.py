"""ElastiCache patching report models."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from shared.models import DashboardBaseModel


class UpdateSeverity(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    MEDIUM = "medium"
    LOW = "low"


class CacheCluster(DashboardBaseModel):
    cache_cluster_id: str
    engine: str
    engine_version: str = ""
    cache_node_type: str = ""
    num_cache_nodes: int = 1
    status: str = "available"
    replication_group_id: str = ""
    at_rest_encryption: bool = False
    in_transit_encryption: bool = False


class ReplicationGroup(DashboardBaseModel):
    replication_group_id: str
    engine: str = "redis"
    status: str = "available"
    cache_node_type: str = ""
    member_clusters: list[str] = Field(default_factory=list)
    multi_az: bool = False
    cluster_enabled: bool = False


class ServerlessCache(DashboardBaseModel):
    serverless_cache_name: str
    engine: str
    status: str = "available"
    major_engine_version: str = ""
    full_engine_version: str = ""


class UpdateAction(DashboardBaseModel):
    """A service update applicable to one cluster or replication group."""

    service_update_name: str
    severity: UpdateSeverity
    available_date: datetime | None = None
    status: str = Field(description="Update action status, e.g. not-applied or complete")
    service_update_status: str = Field(
        default="available",
        description="Status of the service update itself",
    )
    recommended_apply_by: datetime | None = None
    replication_group_id: str = ""
    cache_cluster_id: str = ""
    engine: str = ""

    @property
    def target(self) -> str:
        return self.replication_group_id or self.cache_cluster_id


class PatchingSummary(DashboardBaseModel):
    """Cache inventory and the update actions still to apply."""

    clusters: list[CacheCluster] = Field(default_factory=list)
    replication_groups: list[ReplicationGroup] = Field(default_factory=list)
    serverless_caches: list[ServerlessCache] = Field(default_factory=list)
    pending: list[UpdateAction] = Field(default_factory=list)
    engines: dict[str, int] = Field(default_factory=dict)

    @property
    def standalone_clusters(self) -> int:
        return sum(1 for cluster in self.clusters if not cluster.replication_group_id)

    def count_severity(self, severity: UpdateSeverity) -> int:
        return sum(1 for action in self.pending if action.severity == severity)

    @property
    def targets_with_updates(self) -> int:
        return len({action.target for action in self.pending})
