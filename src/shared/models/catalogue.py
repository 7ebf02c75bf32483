"""Application catalogue models.

Mirrors the records published in the public applications document.
"""

from pydantic import Field, field_validator

from .base import DashboardBaseModel


class ApplicationLinks(DashboardBaseModel):
    self_url: str = Field(default="", alias="self")
    html_url: str = ""
    repo_url: str = ""
    sentry_url: str | None = None


class Application(DashboardBaseModel):
    """An application listed in the catalogue."""

    app_name: str
    shortname: str = ""
    team: str = ""
    alerts_team: str = ""
    production_hosted_on: str = ""
    links: ApplicationLinks = Field(default_factory=ApplicationLinks)

    @field_validator("shortname", "team", "alerts_team", "production_hosted_on", mode="before")
    @classmethod
    def none_as_empty(cls, v: object) -> object:
        """The catalogue publishes null for unset fields."""
        return "" if v is None else v
