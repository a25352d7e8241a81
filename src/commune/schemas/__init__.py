"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .application import (
    ApplicationCreate,
    ApplicationRejection,
    ApplicationResponse,
    ApprovalResponse,
)
from .membership import MemberResponse, MembershipResponse, RoleUpdate
from .profile import ProfileResponse, ProfileShareCreate, ProfileUserResponse

__all__ = [
    "ApplicationCreate", "ApplicationRejection", "ApplicationResponse", "ApprovalResponse",
    "MemberResponse", "MembershipResponse", "RoleUpdate",
    "ProfileResponse", "ProfileShareCreate", "ProfileUserResponse",
]
