"""API routers for the web backend."""

from .files import router as files_router
from .projects import router as projects_router

__all__ = [
    "files_router",
    "projects_router",
]
