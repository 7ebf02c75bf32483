"""Clients for external services."""

from .catalogue import CatalogueClient, CatalogueError

__all__ = ["CatalogueClient", "CatalogueError"]
