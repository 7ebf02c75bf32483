"""Pytest configuration and shared fixtures."""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"

from dashboard.reports import validate_common_params  # noqa: E402
from shared.models import (  # noqa: E402
    Priority,
    ReportData,
    ReportKind,
    ReportMetadata,
    ReportParams,
    ReportStatus,
    Summary,
)

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


class FakeModule:
    """Configurable report module that records how it was called."""

    def __init__(
        self,
        report_id: str = "fake",
        name: str | None = None,
        priority: Priority = Priority.MEDIUM,
        kind: ReportKind = ReportKind.CUSTOM,
        available: bool | Exception = True,
        summaries: list[Summary] | None = None,
        error: Exception | None = None,
        refresh: timedelta = timedelta(minutes=5),
        delay: float = 0.0,
        availability_delay: float = 0.0,
        status: ReportStatus = ReportStatus.COMPLETED,
    ):
        self._metadata = ReportMetadata(
            id=report_id,
            name=name or report_id,
            description=f"{report_id} test module",
            kind=kind,
            version="1.0.0",
            author="tests",
            priority=priority,
        )
        self._available = available
        self._summaries = summaries if summaries is not None else [Summary(title=report_id, value="1")]
        self.error = error
        self.refresh = refresh
        self.delay = delay
        self.availability_delay = availability_delay
        self.status = status
        self.probe_calls = 0
        self.summary_calls = 0
        self.report_calls = 0
        self.validated: list[ReportParams] = []

    def metadata(self) -> ReportMetadata:
        return self._metadata

    async def available(self) -> bool:
        self.probe_calls += 1
        if self.availability_delay:
            await asyncio.sleep(self.availability_delay)
        if isinstance(self._available, Exception):
            raise self._available
        return self._available

    def refresh_interval(self) -> timedelta:
        return self.refresh

    def validate(self, params: ReportParams) -> None:
        self.validated.append(params)
        if params.limit < 0:
            raise ValueError("limit must not be negative")
        validate_common_params(params)

    async def summaries(self, params: ReportParams) -> list[Summary]:
        self.summary_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self._summaries)

    async def report(self, params: ReportParams) -> ReportData:
        self.report_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        data = ReportData(status=self.status, summaries=list(self._summaries))
        if self.status == ReportStatus.FAILED:
            data.add_error("FETCH_ERROR", "upstream unavailable")
        return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_module():
    """Factory for FakeModule instances."""
    return FakeModule


@pytest.fixture
def cached_params() -> ReportParams:
    return ReportParams(use_cache=True)


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "api: HTTP API tests through the ASGI app")
    config.addinivalue_line("markers", "slow: Slow tests")
