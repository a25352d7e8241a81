"""Community bootstrap: the creator becomes the first active owner."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from commune.db.time import utcnow
from commune.db.transaction import transaction
from commune.errors import ConflictError, NotFoundError, ValidationError
from commune.models import (
    Community,
    CommunityRole,
    Membership,
    Profile,
    ProfileOwnership,
    ProfileRole,
)
from commune.services.lookups import get_user_or_404
from commune.services.profiles import validate_profile_identity

logger = logging.getLogger(__name__)

__all__ = ["create_community", "get_community"]


def get_community(db: Session, community_id: int) -> Community:
    """Return a community by id or raise ``NotFoundError``."""
    community = db.get(Community, community_id)
    if community is None:
        raise NotFoundError("Community not found")
    return community


def create_community(
    db: Session,
    user_id: int,
    *,
    slug: str,
    name: str,
    profile_name: str,
    profile_username: str,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
) -> tuple[Community, Membership, Profile]:
    """Create a community with its owner membership and primary profile.

    Raises:
        ValidationError: If the slug or name is empty, or the window is inverted.
        ConflictError: If the slug is already used.
    """
    slug = (slug or "").strip()
    name = (name or "").strip()
    if not slug or not name:
        raise ValidationError("Community slug and name are required")
    if starts_at is not None and ends_at is not None and ends_at < starts_at:
        raise ValidationError("Community cannot end before it starts")
    profile_name, profile_username = validate_profile_identity(profile_name, profile_username)

    with transaction(db, conflict_message="Community slug already exists"):
        get_user_or_404(db, user_id)
        if db.query(Community.id).filter(Community.slug == slug).first() is not None:
            raise ConflictError("Community slug already exists")

        now = utcnow()
        community = Community(slug=slug, name=name, starts_at=starts_at, ends_at=ends_at)
        db.add(community)
        db.flush()

        membership = Membership(
            user_id=user_id,
            community_id=community.id,
            role=CommunityRole.OWNER,
            activated_at=now,
        )
        profile = Profile(
            community_id=community.id,
            name=profile_name,
            username=profile_username,
            is_primary=True,
            activated_at=now,
        )
        db.add_all([membership, profile])
        db.flush()
        db.add(
            ProfileOwnership(
                profile_id=profile.id,
                user_id=user_id,
                role=ProfileRole.OWNER,
                created_by_id=user_id,
            )
        )

    logger.info("User %s created community %s (%s)", user_id, community.id, slug)
    return community, membership, profile
