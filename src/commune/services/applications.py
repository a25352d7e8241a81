"""Application workflow: submitting, reviewing and revoking join requests.

Approval is the only path that creates Membership and Profile rows for a
joining user. The membership row is created once and reused on every later
approval; each approval with a new username creates a new profile, while
re-approving the same application after a revoke reactivates the profile
it created the first time.
"""
from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from commune.db.time import utcnow
from commune.db.transaction import transaction
from commune.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from commune.models import (
    ApplicationStatus,
    CommunityApplication,
    CommunityRole,
    Membership,
    Profile,
    ProfileOwnership,
    ProfileRole,
)
from commune.services.lookups import (
    find_active_membership,
    find_membership,
    get_application_for_update,
    get_community_or_404,
    get_user_or_404,
)
from commune.services.profile_sharing import revoke_shared_profile_access
from commune.services.profiles import (
    assign_primary_profile,
    find_profile_by_username,
    get_owned_profiles,
    is_username_in_use,
    is_username_reserved_by_application,
    validate_profile_identity,
)

logger = logging.getLogger(__name__)

REVIEWER_ROLES = (CommunityRole.OWNER, CommunityRole.MODERATOR)

__all__ = [
    "REVIEWER_ROLES",
    "submit_application",
    "approve_membership_application",
    "reject_membership_application",
    "revoke_application_review",
    "withdraw_application",
    "get_application",
    "get_community_applications",
    "get_user_applications",
    "get_user_latest_application",
    "get_application_statistics",
]


def _require_reviewer(db: Session, user_id: int, community_id: int) -> None:
    membership = find_active_membership(db, user_id, community_id)
    if membership is None or membership.role not in REVIEWER_ROLES:
        raise ForbiddenError("Only community owners and moderators can review applications")


def _find_pending_application(
    db: Session, user_id: int, community_id: int
) -> CommunityApplication | None:
    return db.query(CommunityApplication).filter(
        CommunityApplication.user_id == user_id,
        CommunityApplication.community_id == community_id,
        CommunityApplication.status == ApplicationStatus.PENDING,
    ).first()


def submit_application(
    db: Session,
    user_id: int,
    community_id: int,
    *,
    profile_name: str,
    profile_username: str,
    message: str | None = None,
) -> CommunityApplication:
    """Create a pending application to join a community.

    Args:
        db: Database session.
        user_id: Applicant.
        community_id: Community being applied to.
        profile_name: Display name of the profile to create on approval.
        profile_username: Username of the profile to create on approval.
        message: Optional free text for the reviewers.

    Returns:
        The pending application. No membership or profile exists yet.

    Raises:
        NotFoundError: If the user or community does not exist.
        InvalidStateError: If the community has ended.
        ConflictError: If the user is already a member, already has a pending
            application, or the username is taken by an active profile or
            requested by another pending application.
    """
    profile_name, profile_username = validate_profile_identity(profile_name, profile_username)
    message = (message or "").strip() or None

    with transaction(db, conflict_message="You already have a pending application for this community"):
        get_user_or_404(db, user_id)
        community = get_community_or_404(db, community_id)
        if community.has_ended():
            raise InvalidStateError("Community is no longer active")

        if find_active_membership(db, user_id, community_id) is not None:
            raise ConflictError("Already a member of this community")
        if _find_pending_application(db, user_id, community_id) is not None:
            raise ConflictError("You already have a pending application for this community")

        if is_username_in_use(db, community_id, profile_username):
            raise ConflictError("Username is already taken in this community")
        if is_username_reserved_by_application(
            db, community_id, profile_username, exclude_user_id=user_id
        ):
            raise ConflictError("Username is reserved by another pending application")

        application = CommunityApplication(
            community_id=community_id,
            user_id=user_id,
            profile_name=profile_name,
            profile_username=profile_username,
            message=message,
            status=ApplicationStatus.PENDING,
        )
        db.add(application)

    logger.info(
        "User %s applied to community %s as %r (application %s)",
        user_id,
        community_id,
        profile_username,
        application.id,
    )
    return application


def _claim_profile(
    db: Session,
    application: CommunityApplication,
    reviewer_id: int,
    is_same_application: bool,
) -> Profile:
    """Return the profile this approval activates, creating it when needed."""
    existing = find_profile_by_username(db, application.community_id, application.profile_username)
    now = utcnow()
    if existing is not None:
        owned_by_applicant = any(
            o.user_id == application.user_id and o.role is ProfileRole.OWNER
            for o in existing.ownerships
        )
        # Usernames are permanent: only the profile created by this very
        # application may be brought back.
        if not (owned_by_applicant and is_same_application):
            raise ConflictError("Username is already taken in this community")
        existing.name = application.profile_name
        existing.activated_at = now
        return existing

    profile = Profile(
        community_id=application.community_id,
        name=application.profile_name,
        username=application.profile_username,
        is_primary=False,
        activated_at=now,
    )
    db.add(profile)
    db.flush()
    db.add(
        ProfileOwnership(
            profile_id=profile.id,
            user_id=application.user_id,
            role=ProfileRole.OWNER,
            created_by_id=reviewer_id,
        )
    )
    db.flush()
    return profile


def approve_membership_application(
    db: Session,
    application_id: int,
    reviewer_id: int,
) -> tuple[Membership, Profile]:
    """Approve a pending application, activating a membership and a profile.

    Returns:
        The activated membership and profile.

    Raises:
        NotFoundError: If the application does not exist.
        InvalidStateError: If the application is not pending.
        ForbiddenError: If the reviewer is not an active owner or moderator.
        ConflictError: If the username is taken, including by a concurrent
            approval that won the race.
    """
    with transaction(db, conflict_message="Username or membership was claimed concurrently"):
        application = get_application_for_update(db, application_id)
        if application.status is not ApplicationStatus.PENDING:
            raise InvalidStateError("Application is not pending")
        community_id = application.community_id
        _require_reviewer(db, reviewer_id, community_id)
        get_user_or_404(db, application.user_id)

        membership = find_membership(db, application.user_id, community_id, for_update=True)
        is_same_application = (
            membership is not None and membership.application_id == application.id
        )

        profile = _claim_profile(db, application, reviewer_id, is_same_application)

        if membership is None:
            membership = Membership(
                user_id=application.user_id,
                community_id=community_id,
                role=CommunityRole.MEMBER,
            )
            db.add(membership)
        # An existing row keeps whatever role it last held.
        membership.activated_at = utcnow()
        membership.application_id = application.id
        db.flush()

        assign_primary_profile(db, application.user_id, community_id, profile)

        application.status = ApplicationStatus.APPROVED
        application.reviewed_by_id = reviewer_id
        application.reviewed_at = utcnow()
        application.rejection_reason = None

    logger.info(
        "Application %s approved by user %s: membership %s, profile %s",
        application_id,
        reviewer_id,
        membership.id,
        profile.id,
    )
    return membership, profile


def reject_membership_application(
    db: Session,
    application_id: int,
    reviewer_id: int,
    rejection_reason: str,
) -> CommunityApplication:
    """Reject a pending application; rejection is terminal."""
    rejection_reason = (rejection_reason or "").strip()
    if not rejection_reason:
        raise ValidationError("A rejection reason is required")

    with transaction(db):
        application = get_application_for_update(db, application_id)
        if application.status is not ApplicationStatus.PENDING:
            raise InvalidStateError("Application is not pending")
        _require_reviewer(db, reviewer_id, application.community_id)

        application.status = ApplicationStatus.REJECTED
        application.reviewed_by_id = reviewer_id
        application.reviewed_at = utcnow()
        application.rejection_reason = rejection_reason

    logger.info("Application %s rejected by user %s", application_id, reviewer_id)
    return application


def revoke_application_review(
    db: Session,
    application_id: int,
    *,
    acting_user_id: int | None = None,
) -> CommunityApplication:
    """Return an approved application to pending.

    The membership and profile it activated are deactivated but kept, so a
    later re-approval brings back the same rows. While the membership is the
    one this application activated, the applicant is treated as having left:
    every profile they own in the community is deactivated and their admin
    grants there are revoked. Re-approval reactivates only the application's
    own profile.

    Raises:
        NotFoundError: If the application does not exist.
        InvalidStateError: If the application is not approved.
        ForbiddenError: If ``acting_user_id`` is not a reviewer, or the
            application's membership is the community's active owner.
        ConflictError: If the applicant has since opened another pending
            application in the community.
    """
    with transaction(db, conflict_message="Applicant already has another pending application"):
        application = get_application_for_update(db, application_id)
        if application.status is ApplicationStatus.PENDING:
            raise InvalidStateError("Pending applications have not been reviewed")
        if application.status is ApplicationStatus.REJECTED:
            raise InvalidStateError("Rejected applications cannot be revoked")
        if acting_user_id is not None:
            _require_reviewer(db, acting_user_id, application.community_id)

        membership = (
            db.query(Membership)
            .filter(Membership.application_id == application.id)
            .with_for_update()
            .first()
        )
        if membership is not None:
            if membership.is_active and membership.role is CommunityRole.OWNER:
                raise ForbiddenError("Cannot revoke the owner's application; transfer ownership first")
            membership.activated_at = None
            for owned in get_owned_profiles(db, application.user_id, application.community_id):
                owned.activated_at = None
            db.flush()
            revoke_shared_profile_access(db, application.user_id, application.community_id)

        profile = find_profile_by_username(
            db, application.community_id, application.profile_username
        )
        if profile is not None and any(
            o.user_id == application.user_id and o.role is ProfileRole.OWNER
            for o in profile.ownerships
        ):
            profile.activated_at = None

        application.status = ApplicationStatus.PENDING
        application.reviewed_by_id = None
        application.reviewed_at = None
        application.rejection_reason = None

    logger.info("Review of application %s revoked", application_id)
    return application


def withdraw_application(db: Session, user_id: int, application_id: int) -> None:
    """Delete the applicant's own pending application."""
    with transaction(db):
        application = get_application_for_update(db, application_id)
        if application.user_id != user_id:
            raise NotFoundError("Application not found")
        if application.status is not ApplicationStatus.PENDING:
            raise InvalidStateError("Only pending applications can be withdrawn")
        # A revoked application may still be linked from the membership it activated.
        db.query(Membership).filter(Membership.application_id == application.id).update(
            {Membership.application_id: None}, synchronize_session="fetch"
        )
        db.delete(application)
    logger.info("User %s withdrew application %s", user_id, application_id)


def get_application(db: Session, application_id: int) -> CommunityApplication:
    """Return an application by id or raise ``NotFoundError``."""
    application = db.get(CommunityApplication, application_id)
    if application is None:
        raise NotFoundError("Application not found")
    return application


def get_community_applications(
    db: Session,
    community_id: int,
    status: ApplicationStatus | None = None,
) -> list[CommunityApplication]:
    """Return a community's applications, newest first."""
    query = db.query(CommunityApplication).filter(
        CommunityApplication.community_id == community_id
    )
    if status is not None:
        query = query.filter(CommunityApplication.status == status)
    return query.order_by(
        CommunityApplication.created_at.desc(), CommunityApplication.id.desc()
    ).all()


def get_user_applications(
    db: Session,
    user_id: int,
    community_id: int | None = None,
) -> list[CommunityApplication]:
    """Return applications sent by a user, newest first."""
    query = db.query(CommunityApplication).filter(CommunityApplication.user_id == user_id)
    if community_id is not None:
        query = query.filter(CommunityApplication.community_id == community_id)
    return query.order_by(
        CommunityApplication.created_at.desc(), CommunityApplication.id.desc()
    ).all()


def get_user_latest_application(
    db: Session, user_id: int, community_id: int
) -> CommunityApplication | None:
    """Return the user's most recent application to a community."""
    applications = get_user_applications(db, user_id, community_id)
    return applications[0] if applications else None


def get_application_statistics(db: Session, community_id: int) -> dict[ApplicationStatus, int]:
    """Count a community's applications per status."""
    counts = {status: 0 for status in ApplicationStatus}
    rows = (
        db.query(CommunityApplication.status, func.count(CommunityApplication.id))
        .filter(CommunityApplication.community_id == community_id)
        .group_by(CommunityApplication.status)
        .all()
    )
    for status, total in rows:
        counts[ApplicationStatus(status)] = total
    return counts
