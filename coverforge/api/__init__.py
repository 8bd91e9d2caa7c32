"""API routers for the CoverForge FastAPI application."""

from . import config, export, status, uploads

__all__ = [
    "config",
    "export",
    "status",
    "uploads",
]
