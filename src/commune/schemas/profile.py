"""Profile-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from commune.models import ProfileRole


class ProfileResponse(BaseModel):
    """Profile information returned by the API."""

    id: int
    community_id: int
    name: str
    username: str
    bio: str | None
    is_primary: bool
    activated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ProfileShareCreate(BaseModel):
    """Request to share a profile with the member behind ``username``."""

    username: str = Field(..., min_length=1, description="Username of the target member's profile")
    role: ProfileRole = ProfileRole.ADMIN


class ProfileUserResponse(BaseModel):
    """A user's access grant on a profile."""

    user_id: int
    role: ProfileRole
    created_by_id: int

    model_config = ConfigDict(from_attributes=True)
