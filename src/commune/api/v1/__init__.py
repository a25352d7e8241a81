"""Version 1 API endpoints."""

from .endpoints import applications_router, members_router, profiles_router

__all__ = [
    "applications_router",
    "members_router",
    "profiles_router",
]
