"""Application review endpoints for the Commune API."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from commune.api.v1.dependencies import CurrentUserDep, SessionDep
from commune.models import ApplicationStatus, CommunityApplication
from commune.schemas.application import (
    ApplicationCreate,
    ApplicationRejection,
    ApplicationResponse,
    ApprovalResponse,
)
from commune.schemas.membership import MembershipResponse
from commune.schemas.profile import ProfileResponse
from commune.services import applications as application_service
from commune.services.applications import REVIEWER_ROLES
from commune.services.membership import validate_membership_role

router = APIRouter(tags=["applications"])


@router.post(
    "/communities/{community_id}/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_application(
    community_id: int,
    payload: ApplicationCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityApplication:
    """Apply to join a community."""
    return application_service.submit_application(
        db,
        current_user.id,
        community_id,
        profile_name=payload.profile_name,
        profile_username=payload.profile_username,
        message=payload.message,
    )


@router.get(
    "/communities/{community_id}/applications",
    response_model=list[ApplicationResponse],
)
def list_applications(
    community_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    status_filter: ApplicationStatus | None = None,
) -> list[CommunityApplication]:
    """List a community's applications for its owner and moderators."""
    validate_membership_role(db, current_user.id, community_id, REVIEWER_ROLES)
    return application_service.get_community_applications(db, community_id, status_filter)


@router.post("/applications/{application_id}/approve", response_model=ApprovalResponse)
def approve_application(
    application_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ApprovalResponse:
    """Approve a pending application."""
    membership, profile = application_service.approve_membership_application(
        db, application_id, current_user.id
    )
    return ApprovalResponse(
        membership=MembershipResponse.model_validate(membership),
        profile=ProfileResponse.model_validate(profile),
    )


@router.post("/applications/{application_id}/reject", response_model=ApplicationResponse)
def reject_application(
    application_id: int,
    payload: ApplicationRejection,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityApplication:
    """Reject a pending application with a reason."""
    return application_service.reject_membership_application(
        db, application_id, current_user.id, payload.reason
    )


@router.post("/applications/{application_id}/revoke", response_model=ApplicationResponse)
def revoke_application(
    application_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityApplication:
    """Return an approved application to pending."""
    return application_service.revoke_application_review(
        db, application_id, acting_user_id=current_user.id
    )


@router.delete(
    "/applications/{application_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def withdraw_application(
    application_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    """Withdraw the caller's pending application."""
    application_service.withdraw_application(db, current_user.id, application_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
