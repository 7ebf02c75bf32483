"""HTTP API routers."""

from . import applications, health, reports
from .errors import register_exception_handlers

__all__ = ["applications", "health", "reports", "register_exception_handlers"]
