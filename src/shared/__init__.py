"""Reports dashboard shared package.

This package contains components shared by the service and its tests:
- models: Pydantic data models
- config: Configuration management
- observability: Structured logging
"""

__version__ = "0.1.0"
