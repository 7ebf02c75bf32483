"""Application catalogue API endpoints."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field

from shared.models import Application, DashboardBaseModel, ReportParams
from shared.observability import get_logger

from ..clients import CatalogueError
from ..modules import ReportSources
from ..modules.costs import CostAnalysisService
from ..modules.costs.models import ServiceCost
from ..modules.sources import ApplicationDirectory
from ..reports import (
    ApplicationNotFoundError,
    ReportUnavailableError,
    ReportValidationError,
    validate_common_params,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


class ApplicationListResponse(DashboardBaseModel):
    applications: list[Application] = Field(default_factory=list)
    count: int = 0
    status: str = "success"


class ApplicationServicesResponse(DashboardBaseModel):
    """Tagged spend of one application, broken down by service."""

    application: str
    services: list[ServiceCost] = Field(default_factory=list)
    count: int = 0
    total: float = 0.0
    currency: str = "GBP"
    start: date
    end: date
    status: str = "success"


class CatalogueRefreshResponse(DashboardBaseModel):
    status: str = "success"
    message: str


def get_sources(request: Request) -> ReportSources | None:
    return request.app.state.sources


def get_catalogue(sources: ReportSources | None = Depends(get_sources)) -> ApplicationDirectory:
    if sources is None or sources.catalogue is None:
        raise ReportUnavailableError("application catalogue is not configured")
    return sources.catalogue


async def find_application(catalogue: ApplicationDirectory, name: str) -> Application:
    """Look an application up by name or shortname.

    Raises:
        ApplicationNotFoundError: if the catalogue has no such application
        ReportUnavailableError: if the catalogue cannot be read
    """
    try:
        application = await catalogue.get_application(name)
    except CatalogueError as e:
        raise ReportUnavailableError(f"application catalogue unavailable: {e}") from e
    if application is None:
        raise ApplicationNotFoundError(f"application {name!r} not found")
    return application


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List applications",
    description="Applications in the catalogue, optionally narrowed to one team or hosting platform.",
)
async def list_applications(
    team: str | None = Query(None, description="Owning team, case insensitive"),
    hosting: str | None = Query(None, description="Production hosting platform, case insensitive"),
    catalogue: ApplicationDirectory = Depends(get_catalogue),
):
    try:
        if team:
            applications = await catalogue.list_by_team(team)
        elif hosting:
            applications = await catalogue.list_by_hosting(hosting)
        else:
            applications = await catalogue.list_applications()
    except CatalogueError as e:
        raise ReportUnavailableError(f"application catalogue unavailable: {e}") from e

    if team and hosting:
        wanted = hosting.lower()
        applications = [app for app in applications if app.production_hosted_on.lower() == wanted]

    return ApplicationListResponse(applications=applications, count=len(applications))


@router.post(
    "/refresh",
    response_model=CatalogueRefreshResponse,
    summary="Refetch the catalogue",
    description="Drops the in-memory copy so the next request reads the catalogue again.",
)
async def refresh_catalogue(catalogue: ApplicationDirectory = Depends(get_catalogue)):
    catalogue.clear_cache()
    logger.info("Application catalogue cache cleared")
    return CatalogueRefreshResponse(message="application catalogue cache cleared")


@router.get(
    "/{name}",
    response_model=Application,
    summary="Get an application",
)
async def get_application(name: str, catalogue: ApplicationDirectory = Depends(get_catalogue)):
    return await find_application(catalogue, name)


@router.get(
    "/{name}/services",
    response_model=ApplicationServicesResponse,
    summary="Application spend by service",
    description="Spend tagged with the application's system tag, month to date unless a window is given.",
)
async def get_application_services(
    request: Request,
    name: str,
    start_time: datetime | None = Query(None, description="Start of the cost window (ISO 8601)"),
    end_time: datetime | None = Query(None, description="End of the cost window (ISO 8601)"),
    sources: ReportSources | None = Depends(get_sources),
    catalogue: ApplicationDirectory = Depends(get_catalogue),
):
    if sources is None or sources.costs is None:
        raise ReportUnavailableError("cost data source is not configured")

    application = await find_application(catalogue, name)

    params = ReportParams(start_time=start_time, end_time=end_time)
    validate_common_params(params)
    service = CostAnalysisService(
        sources.costs,
        catalogue,
        currency=request.app.state.settings.costs.currency,
    )
    start, end = service.window(params)
    if start >= end:
        raise ReportValidationError(f"empty cost window {start} to {end}")

    summary = await service.service_breakdown(application, params)
    return ApplicationServicesResponse(
        application=application.app_name,
        services=summary.services,
        count=len(summary.services),
        total=summary.total,
        currency=summary.currency,
        start=summary.start,
        end=summary.end,
    )
