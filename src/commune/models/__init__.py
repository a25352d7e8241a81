"""SQLAlchemy models for the Commune application."""

from .application import ApplicationStatus, CommunityApplication
from .community import Community
from .membership import CommunityRole, Membership, MembershipStatus
from .profile import Profile, ProfileOwnership, ProfileRole
from .user import User

__all__ = [
    "ApplicationStatus", "CommunityApplication",
    "Community",
    "CommunityRole", "Membership", "MembershipStatus",
    "Profile", "ProfileOwnership", "ProfileRole",
    "User",
]
