"""API endpoints package for the request defense layer."""

from shield.app.api.admin import router as admin_router

__all__ = ["admin_router"]
