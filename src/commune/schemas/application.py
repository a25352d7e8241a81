"""Application-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from commune.models import ApplicationStatus

from .membership import MembershipResponse
from .profile import ProfileResponse


class ApplicationCreate(BaseModel):
    """Schema for submitting an application to join a community."""

    profile_name: str = Field(..., min_length=1, max_length=100)
    profile_username: str = Field(..., min_length=1, max_length=50)
    message: str | None = None


class ApplicationRejection(BaseModel):
    """Schema for rejecting an application."""

    reason: str = Field(..., min_length=1)


class ApplicationResponse(BaseModel):
    """Application state returned by the API."""

    id: int
    community_id: int
    user_id: int
    profile_name: str
    profile_username: str
    message: str | None
    status: ApplicationStatus
    reviewed_by_id: int | None
    reviewed_at: datetime | None
    rejection_reason: str | None

    model_config = ConfigDict(from_attributes=True)


class ApprovalResponse(BaseModel):
    """Membership and profile activated by an approval."""

    membership: MembershipResponse
    profile: ProfileResponse
