"""Existence checks and row lookups shared by the membership services."""
from __future__ import annotations

from sqlalchemy.orm import Session

from commune.errors import NotFoundError
from commune.models import Community, CommunityApplication, Membership, Profile, User

__all__ = [
    "get_user_or_404",
    "get_community_or_404",
    "get_profile_or_404",
    "get_application_for_update",
    "find_membership",
    "find_active_membership",
]


def get_user_or_404(db: Session, user_id: int) -> User:
    """Return a live user account or raise ``NotFoundError``."""
    user = db.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFoundError("User not found")
    return user


def get_community_or_404(db: Session, community_id: int) -> Community:
    """Return a community or raise ``NotFoundError``."""
    community = db.get(Community, community_id)
    if community is None:
        raise NotFoundError("Community not found")
    return community


def get_profile_or_404(db: Session, profile_id: int) -> Profile:
    """Return a non-deleted profile or raise ``NotFoundError``."""
    profile = db.get(Profile, profile_id)
    if profile is None or profile.deleted_at is not None:
        raise NotFoundError("Profile not found")
    return profile


def get_application_for_update(db: Session, application_id: int) -> CommunityApplication:
    """Lock and return an application row or raise ``NotFoundError``."""
    application = (
        db.query(CommunityApplication)
        .filter(CommunityApplication.id == application_id)
        .with_for_update()
        .first()
    )
    if application is None:
        raise NotFoundError("Application not found")
    return application


def find_membership(
    db: Session,
    user_id: int,
    community_id: int,
    *,
    for_update: bool = False,
) -> Membership | None:
    """Return the (user, community) membership row regardless of activation."""
    query = db.query(Membership).filter(
        Membership.user_id == user_id,
        Membership.community_id == community_id,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def find_active_membership(
    db: Session,
    user_id: int,
    community_id: int,
    *,
    for_update: bool = False,
) -> Membership | None:
    """Return the (user, community) membership only while it is active."""
    membership = find_membership(db, user_id, community_id, for_update=for_update)
    if membership is None or not membership.is_active:
        return None
    return membership
