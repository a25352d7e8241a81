"""Profile sharing endpoints for the Commune API."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from commune.api.v1.dependencies import CurrentUserDep, SessionDep
from commune.errors import ForbiddenError
from commune.models import ProfileOwnership
from commune.schemas.profile import ProfileShareCreate, ProfileUserResponse
from commune.services import profile_sharing, profiles
from commune.services.lookups import get_profile_or_404

router = APIRouter(prefix="/profiles/{profile_id}", tags=["profiles"])


@router.get("/users", response_model=list[ProfileUserResponse])
def list_profile_users(
    profile_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[ProfileOwnership]:
    """List users with access to a profile; owner only."""
    if not profiles.can_manage_profile(db, current_user.id, profile_id):
        raise ForbiddenError("You do not have permission to manage this profile")
    return profiles.get_profile_users(db, profile_id)


@router.post(
    "/users",
    response_model=ProfileUserResponse,
    status_code=status.HTTP_201_CREATED,
)
def share_profile(
    profile_id: int,
    payload: ProfileShareCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ProfileOwnership:
    """Share a profile with another member."""
    profile = get_profile_or_404(db, profile_id)
    return profile_sharing.share_profile_with_user(
        db,
        current_user.id,
        profile_id,
        profile.community_id,
        payload.username,
        payload.role,
    )


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def remove_profile_user(
    profile_id: int,
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    """Revoke a user's access to a profile."""
    profile_sharing.remove_user_from_profile_sharing(db, current_user.id, profile_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
