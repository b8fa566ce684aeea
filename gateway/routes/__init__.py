"""API routes package."""

from gateway.routes.admin_routes import router as admin_router
from gateway.routes.auth_routes import router as auth_router
from gateway.routes.download_routes import router as download_router
from gateway.routes.file_routes import router as file_router

__all__ = ["admin_router", "auth_router", "download_router", "file_router"]
