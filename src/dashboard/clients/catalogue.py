"""Client for the public application catalogue.

Fetches the applications document over HTTP with retries and keeps the
parsed list in memory for a configurable time.
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta

import httpx
from pydantic import ValidationError

from shared.config import CatalogueSettings
from shared.models import Application
from shared.observability import get_logger, log_external_call_end, log_external_call_start

logger = get_logger(__name__)

SERVICE_NAME = "catalogue"


class CatalogueError(Exception):
    """Raised when the catalogue cannot be fetched or parsed."""

    def __init__(self, message: str, status_code: int = 0, endpoint: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint

    def __str__(self) -> str:
        if self.status_code:
            return f"catalogue error (status {self.status_code}): {self.message}"
        return f"catalogue error: {self.message}"


class CatalogueClient:
    """Client for the applications catalogue."""

    def __init__(
        self,
        apps_url: str = "https://docs.publishing.service.gov.uk/apps.json",
        timeout: float = 30.0,
        cache_ttl: timedelta = timedelta(minutes=15),
        retries: int = 3,
        retry_delay: float = 1.0,
        user_agent: str = "ops-reports-dashboard/0.1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.apps_url = apps_url
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            transport=transport,
        )
        self._cache_ttl = cache_ttl.total_seconds()
        self._retries = max(1, retries)
        self._retry_delay = retry_delay
        self._applications: list[Application] | None = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: CatalogueSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> CatalogueClient:
        return cls(
            apps_url=settings.apps_url,
            timeout=settings.timeout_seconds,
            cache_ttl=timedelta(seconds=settings.cache_ttl_seconds),
            retries=settings.retries,
            retry_delay=settings.retry_delay_seconds,
            user_agent=settings.user_agent,
            transport=transport,
        )

    async def list_applications(self) -> list[Application]:
        """All applications, served from memory while fresh.

        Raises:
            CatalogueError: if the document cannot be fetched or parsed
        """
        async with self._lock:
            if self._applications is not None and time.monotonic() - self._fetched_at < self._cache_ttl:
                return list(self._applications)

            applications = await self._fetch()
            self._applications = applications
            self._fetched_at = time.monotonic()
            logger.info("Fetched application catalogue", count=len(applications))
            return list(applications)

    async def get_application(self, name: str) -> Application | None:
        """Find an application by name or shortname, ignoring case."""
        wanted = name.lower()
        for app in await self.list_applications():
            if app.app_name.lower() == wanted or app.shortname.lower() == wanted:
                return app
        return None

    async def list_by_team(self, team: str) -> list[Application]:
        wanted = team.lower()
        return [app for app in await self.list_applications() if app.team.lower() == wanted]

    async def list_by_hosting(self, platform: str) -> list[Application]:
        wanted = platform.lower()
        return [
            app for app in await self.list_applications() if app.production_hosted_on.lower() == wanted
        ]

    async def ping(self) -> bool:
        """Check that the catalogue can be read."""
        try:
            await self.list_applications()
        except CatalogueError as e:
            logger.warning("Catalogue unavailable", error=str(e))
            return False
        return True

    def clear_cache(self) -> None:
        self._applications = None
        self._fetched_at = 0.0

    async def _fetch(self) -> list[Application]:
        last_error = CatalogueError("no attempts made", endpoint=self.apps_url)

        for attempt in range(1, self._retries + 1):
            log_external_call_start(logger, SERVICE_NAME, "list_applications")
            start = time.perf_counter()

            try:
                response = await self.client.get(self.apps_url)
            except httpx.HTTPError as e:
                last_error = CatalogueError(f"request failed: {e}", endpoint=self.apps_url)
            else:
                if response.status_code == 200:
                    applications = self._parse(response)
                    log_external_call_end(
                        logger,
                        SERVICE_NAME,
                        "list_applications",
                        success=True,
                        duration_ms=(time.perf_counter() - start) * 1000,
                    )
                    return applications

                last_error = CatalogueError(
                    f"unexpected response {response.reason_phrase}",
                    status_code=response.status_code,
                    endpoint=self.apps_url,
                )
                retryable = response.status_code == 429 or response.status_code >= 500
                if not retryable:
                    log_external_call_end(
                        logger,
                        SERVICE_NAME,
                        "list_applications",
                        success=False,
                        duration_ms=(time.perf_counter() - start) * 1000,
                        error=str(last_error),
                    )
                    raise last_error

            log_external_call_end(
                logger,
                SERVICE_NAME,
                "list_applications",
                success=False,
                duration_ms=(time.perf_counter() - start) * 1000,
                error=str(last_error),
            )
            if attempt < self._retries:
                logger.debug("Retrying catalogue fetch", attempt=attempt, retries=self._retries)
                await asyncio.sleep(self._retry_delay * attempt)

        raise last_error

    def _parse(self, response: httpx.Response) -> list[Application]:
        try:
            payload = response.json()
        except ValueError as e:
            raise CatalogueError(f"invalid JSON: {e}", status_code=200, endpoint=self.apps_url) from e

        if not isinstance(payload, list):
            raise CatalogueError("expected a list of applications", status_code=200, endpoint=self.apps_url)

        try:
            return [Application.model_validate(item) for item in payload]
        except ValidationError as e:
            raise CatalogueError(
                f"invalid application record: {e.error_count()} errors",
                status_code=200,
                endpoint=self.apps_url,
            ) from e

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
