"""Membership-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from commune.models import CommunityRole, MembershipStatus

from .profile import ProfileResponse


class MembershipResponse(BaseModel):
    """Membership state returned by the API."""

    id: int
    user_id: int
    community_id: int
    role: CommunityRole
    status: MembershipStatus
    activated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class MemberResponse(BaseModel):
    """Active member listing entry."""

    membership: MembershipResponse
    profiles: list[ProfileResponse]

    model_config = ConfigDict(from_attributes=True)


class RoleUpdate(BaseModel):
    """Request to change a member's role."""

    role: CommunityRole
