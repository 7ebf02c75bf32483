"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- Component settings for the cache, report fan-out and catalogue client
- Cached settings access via get_settings()
"""

from .settings import (
    CacheSettings,
    CatalogueSettings,
    CostsSettings,
    Environment,
    EvictionPolicy,
    LogFormat,
    LogLevel,
    ReportsSettings,
    Settings,
    get_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "EvictionPolicy",
    "LogLevel",
    "LogFormat",
    # Component settings
    "CacheSettings",
    "CatalogueSettings",
    "CostsSettings",
    "ReportsSettings",
]
