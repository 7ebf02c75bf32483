"""Ops reports dashboard main application."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import Settings, get_settings
from shared.observability import get_logger, setup_logging

from .api import applications, health, register_exception_handlers, reports
from .clients import CatalogueClient
from .middleware import RequestContextMiddleware
from .modules import ReportSources, register_modules
from .reports import ReportManager

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Wires report modules to their data sources on startup and releases the
    cache reaper and HTTP clients on shutdown.
    """
    settings: Settings = app.state.settings
    manager: ReportManager = app.state.report_manager

    setup_logging(settings.app_name, settings.log_level, settings.log_format)
    logger.info(
        "Starting ops reports dashboard",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    owned_clients: list[CatalogueClient] = []
    sources: ReportSources | None = app.state.sources
    if sources is None:
        catalogue = CatalogueClient.from_settings(settings.catalogue)
        owned_clients.append(catalogue)
        sources = ReportSources(catalogue=catalogue)
        app.state.sources = sources

    registered = register_modules(manager, sources, currency=settings.costs.currency)
    manager.start()

    logger.info("Ops reports dashboard ready", reports=registered)

    yield

    logger.info("Shutting down ops reports dashboard")
    await manager.shutdown()
    for client in owned_clients:
        await client.close()
    if owned_clients:
        app.state.sources = None
    logger.info("Ops reports dashboard shutdown complete")


def create_app(
    settings: Settings | None = None,
    manager: ReportManager | None = None,
    sources: ReportSources | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        manager: Pre-built report manager; one is created from settings otherwise
        sources: Data sources for the report modules; without them only the
            catalogue backed modules are wired
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Ops Reports Dashboard",
        description="Summary cards and structured reports over platform data sources",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.report_manager = manager or ReportManager.from_settings(settings)
    app.state.sources = sources

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(reports.router, prefix="/api")
    app.include_router(applications.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "dashboard.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.is_development,
    )
