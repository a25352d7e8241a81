"""Membership endpoints for the Commune API."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from commune.api.v1.dependencies import CurrentUserDep, SessionDep
from commune.models import CommunityRole, Membership
from commune.schemas.membership import MemberResponse, MembershipResponse, RoleUpdate
from commune.schemas.profile import ProfileResponse
from commune.services import membership as membership_service

router = APIRouter(prefix="/communities/{community_id}", tags=["members"])


@router.get("/members", response_model=list[MemberResponse])
def list_members(
    community_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = 50,
    offset: int = 0,
) -> list[MemberResponse]:
    """List active members; visible to active members only."""
    membership_service.validate_membership_role(
        db, current_user.id, community_id, list(CommunityRole)
    )
    members = membership_service.get_community_members(
        db, community_id, limit=limit, offset=offset
    )
    return [
        MemberResponse(
            membership=MembershipResponse.model_validate(member.membership),
            profiles=[ProfileResponse.model_validate(p) for p in member.profiles],
        )
        for member in members
    ]


@router.delete(
    "/membership",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def leave_community(
    community_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    """Leave a community."""
    membership_service.leave_community(db, current_user.id, community_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/members/{membership_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def remove_member(
    community_id: int,
    membership_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    """Remove a member; owner only."""
    membership_service.remove_member(db, community_id, membership_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/members/{membership_id}", response_model=MembershipResponse)
def update_member_role(
    community_id: int,
    membership_id: int,
    payload: RoleUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Membership:
    """Change a member's role; promoting to owner transfers ownership."""
    return membership_service.update_member_role(
        db, community_id, membership_id, payload.role, current_user.id
    )
