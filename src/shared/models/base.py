"""Base model configuration for all Pydantic models."""

from pydantic import BaseModel, ConfigDict


class DashboardBaseModel(BaseModel):
    """Base model with common configuration.

    Conventions:
    - All timestamps are timezone-aware (UTC preferred)
    - Field names are lowercase snake_case
    - Enum fields serialise to their plain values
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )
