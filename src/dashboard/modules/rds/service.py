"""PostgreSQL version policy and instance compliance checks."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable
from datetime import date, datetime, timezone

from shared.models import ReportParams
from shared.observability import get_logger

from ..sources import DatabaseInventory
from .models import DatabaseInstance, InventorySummary, VersionCheck, VersionInfo, VersionSummary

logger = get_logger(__name__)

# Community support windows, see https://www.postgresql.org/support/versioning/
POSTGRES_VERSIONS: dict[str, VersionInfo] = {
    info.major_version: info
    for info in (
        VersionInfo(major_version="17", latest_version="17.2", eol_date=date(2029, 11, 8)),
        VersionInfo(major_version="16", latest_version="16.1", eol_date=date(2028, 11, 9)),
        VersionInfo(major_version="15", latest_version="15.5", eol_date=date(2027, 11, 11)),
        VersionInfo(major_version="14", latest_version="14.10", eol_date=date(2026, 11, 12)),
        VersionInfo(major_version="13", latest_version="13.13", eol_date=date(2025, 11, 13)),
        VersionInfo(major_version="12", latest_version="12.17", eol_date=date(2024, 11, 14)),
        VersionInfo(major_version="11", latest_version="11.22", eol_date=date(2023, 11, 9)),
        VersionInfo(major_version="10", latest_version="10.23", eol_date=date(2022, 11, 10)),
        VersionInfo(major_version="9.6", latest_version="9.6.24", eol_date=date(2021, 11, 11)),
    )
}

# Majors missing from the table and older than this are assumed end-of-life
OLDEST_SUPPORTED_MAJOR = 12

ACTION_EOL = "Critical: Upgrade immediately - version is end-of-life"
ACTION_OUTDATED = "Upgrade recommended - newer stable version available"
ACTION_NONE = "No action needed - version is current"

ENVIRONMENT_KEYWORDS = {
    "prod": "production",
    "production": "production",
    "staging": "staging",
    "stage": "staging",
    "test": "test",
    "testing": "test",
    "dev": "development",
    "development": "development",
    "demo": "demo",
}
NON_APPLICATION_PARTS = {"db", "database", "postgres", "postgresql", "govuk"}

_VERSION = re.compile(r"^(\d+)(?:\.(\d+))?")


def extract_major_version(version: str) -> str:
    """14.9 -> 14, 9.6.24 -> 9.6 (pre-10 releases used two-part majors)."""
    match = _VERSION.match(version)
    if not match:
        return version
    major, minor = match.groups()
    if int(major) < 10 and minor is not None:
        return f"{major}.{minor}"
    return major


def version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def extract_application_info(instance_id: str) -> tuple[str, str]:
    """Guess application and environment from ids like app-env-db.

    Defaults the environment to production when no keyword is present.
    """
    application = ""
    environment = ""
    for part in instance_id.lower().split("-"):
        if part in ENVIRONMENT_KEYWORDS:
            environment = ENVIRONMENT_KEYWORDS[part]
        elif part not in NON_APPLICATION_PARTS and not application:
            application = part
    return application, environment or "production"


class VersionPolicy:
    """Decides whether a PostgreSQL version is end-of-life or outdated."""

    def __init__(self, versions: dict[str, VersionInfo] | None = None):
        self.versions = versions if versions is not None else POSTGRES_VERSIONS

    def info(self, major_version: str) -> VersionInfo | None:
        return self.versions.get(major_version)

    def is_eol(self, major_version: str, today: date) -> bool:
        info = self.info(major_version)
        if info is not None:
            return today > info.eol_date
        numbers = version_tuple(major_version)
        return bool(numbers) and numbers[0] < OLDEST_SUPPORTED_MAJOR

    def is_outdated(self, version: str, major_version: str, today: date) -> bool:
        """Supported, but behind the latest release of its major (or unknown)."""
        if self.is_eol(major_version, today):
            return False
        info = self.info(major_version)
        if info is None:
            return True
        return version_tuple(version) < version_tuple(info.latest_version)

    def check(self, instance: DatabaseInstance, today: date) -> VersionCheck:
        info = self.info(instance.major_version)
        is_eol = instance.is_eol or self.is_eol(instance.major_version, today)
        is_outdated = not is_eol and self.is_outdated(instance.version, instance.major_version, today)

        if is_eol:
            action = ACTION_EOL
        elif is_outdated:
            action = ACTION_OUTDATED
        else:
            action = ACTION_NONE

        return VersionCheck(
            instance=instance,
            major_version=instance.major_version,
            is_eol=is_eol,
            is_outdated=is_outdated,
            latest_version=info.latest_version if info else "",
            eol_date=instance.eol_date or (info.eol_date if info else None),
            recommended_action=action,
        )


class DatabaseVersionService:
    """Checks every inventory instance against the version policy."""

    def __init__(
        self,
        inventory: DatabaseInventory,
        policy: VersionPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.inventory = inventory
        self.policy = policy or VersionPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def enrich(self, instance: DatabaseInstance) -> DatabaseInstance:
        """Fill in major version, application and environment where missing."""
        update: dict[str, object] = {}
        if not instance.major_version:
            update["major_version"] = extract_major_version(instance.version)
        if not instance.application or not instance.environment:
            application, environment = extract_application_info(instance.instance_id)
            update["application"] = instance.application or application
            update["environment"] = instance.environment or environment
        return instance.model_copy(update=update) if update else instance

    async def instances(self, params: ReportParams) -> list[DatabaseInstance]:
        raw = await self.inventory.list_instances()
        instances = [self.enrich(instance) for instance in raw if instance.engine.startswith("postgres")]

        if params.applications:
            wanted = {name.lower() for name in params.applications}
            instances = [i for i in instances if i.application.lower() in wanted]
        if params.environments:
            wanted_envs = {env.lower() for env in params.environments}
            instances = [i for i in instances if i.environment.lower() in wanted_envs]

        logger.debug("Fetched database instances", total=len(raw), selected=len(instances))
        return instances

    async def summary(self, params: ReportParams) -> InventorySummary:
        today = self._clock().date()
        checks = [self.policy.check(instance, today) for instance in await self.instances(params)]

        counts = Counter(check.major_version for check in checks)
        versions = [
            VersionSummary(
                major_version=major,
                count=count,
                is_eol=any(c.is_eol for c in checks if c.major_version == major),
                is_outdated=any(c.is_outdated for c in checks if c.major_version == major),
            )
            for major, count in sorted(counts.items(), key=lambda kv: version_tuple(kv[0]), reverse=True)
        ]

        return InventorySummary(
            total=len(checks),
            eol=sum(1 for check in checks if check.is_eol),
            outdated=sum(1 for check in checks if check.is_outdated),
            checks=checks,
            versions=versions,
        )
