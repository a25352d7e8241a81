"""API endpoint modules for version 1."""

from .applications import router as applications_router
from .members import router as members_router
from .profiles import router as profiles_router

__all__ = [
    "applications_router",
    "members_router",
    "profiles_router",
]
