"""Profile sharing: granting other members admin access to a profile."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from commune.db.transaction import transaction
from commune.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from commune.models import Profile, ProfileOwnership, ProfileRole
from commune.services.lookups import find_active_membership, get_profile_or_404
from commune.services.profiles import (
    can_manage_profile,
    find_profile_by_username,
    get_profile_ownership,
    get_profile_users,
)

logger = logging.getLogger(__name__)

__all__ = [
    "revoke_shared_profile_access",
    "share_profile_with_user",
    "remove_user_from_profile_sharing",
]


def revoke_shared_profile_access(db: Session, user_id: int, community_id: int) -> int:
    """Delete every admin grant the user holds on profiles in a community.

    Owner rows are never touched. Runs inside the caller's transaction.

    Returns:
        Number of grants removed.
    """
    grant_ids = [
        grant_id
        for (grant_id,) in db.query(ProfileOwnership.id)
        .join(Profile, ProfileOwnership.profile_id == Profile.id)
        .filter(
            ProfileOwnership.user_id == user_id,
            ProfileOwnership.role != ProfileRole.OWNER,
            Profile.community_id == community_id,
            Profile.deleted_at.is_(None),
        )
        .all()
    ]
    if not grant_ids:
        return 0

    db.query(ProfileOwnership).filter(ProfileOwnership.id.in_(grant_ids)).delete(
        synchronize_session="fetch"
    )
    db.flush()
    logger.info(
        "Revoked %d shared profile grant(s) for user %s in community %s",
        len(grant_ids),
        user_id,
        community_id,
    )
    return len(grant_ids)


def share_profile_with_user(
    db: Session,
    owner_user_id: int,
    profile_id: int,
    community_id: int,
    target_username: str,
    role: ProfileRole | str = ProfileRole.ADMIN,
) -> ProfileOwnership:
    """Grant another active member admin access to a non-primary profile.

    The target is resolved through the owner of the active profile
    holding ``target_username`` in the community.

    Raises:
        ValidationError: If ``role`` is not ``admin``.
        ForbiddenError: If the caller does not own the profile.
        NotFoundError: If the profile or the target user cannot be found.
        InvalidStateError: If the profile is primary or the target is not an
            active member.
        ConflictError: If the target already has access to the profile.
    """
    try:
        role = ProfileRole(role)
    except ValueError as exc:
        raise ValidationError(f"Unknown profile role: {role}") from exc
    if role is not ProfileRole.ADMIN:
        raise ValidationError("Profiles can only be shared with the admin role")

    with transaction(db, conflict_message="User already has access to this profile"):
        if not can_manage_profile(db, owner_user_id, profile_id):
            raise ForbiddenError("You do not have permission to manage this profile")

        profile = get_profile_or_404(db, profile_id)
        if profile.community_id != community_id:
            raise NotFoundError("Profile not found")
        if profile.is_primary:
            raise InvalidStateError("Primary profiles cannot be shared")

        target_profile = find_profile_by_username(db, community_id, target_username)
        target_owner = None
        # Retired usernames of deactivated profiles do not resolve.
        if target_profile is not None and target_profile.is_active:
            target_owner = next(
                (o for o in target_profile.ownerships if o.role is ProfileRole.OWNER),
                None,
            )
        if target_owner is None:
            raise NotFoundError("User not found")
        target_user_id = target_owner.user_id

        if find_active_membership(db, target_user_id, community_id) is None:
            raise InvalidStateError("User is not a member of this community")
        if get_profile_ownership(db, target_user_id, profile_id) is not None:
            raise ConflictError("User already has access to this profile")

        grant = ProfileOwnership(
            profile_id=profile_id,
            user_id=target_user_id,
            role=role,
            created_by_id=owner_user_id,
        )
        db.add(grant)

    logger.info(
        "User %s shared profile %s with user %s", owner_user_id, profile_id, target_user_id
    )
    return grant


def remove_user_from_profile_sharing(
    db: Session,
    acting_user_id: int,
    profile_id: int,
    target_user_id: int,
) -> None:
    """Remove a user's access to a profile.

    A sole owner cannot remove themself, so a profile never ends up with no
    owner at all.
    """
    with transaction(db):
        if not can_manage_profile(db, acting_user_id, profile_id):
            raise ForbiddenError("You do not have permission to manage this profile")

        if acting_user_id == target_user_id:
            owners = [o for o in get_profile_users(db, profile_id) if o.role is ProfileRole.OWNER]
            if len(owners) == 1:
                raise ForbiddenError("The only owner cannot remove themselves")

        ownership = get_profile_ownership(db, target_user_id, profile_id)
        if ownership is None:
            raise NotFoundError("User does not have access to this profile")
        db.delete(ownership)

    logger.info(
        "User %s removed user %s from profile %s", acting_user_id, target_user_id, profile_id
    )
