"""Identity store queries and profile invariants.

Profiles are per-community display identities reached through
``ProfileOwnership`` rows. These helpers answer capability questions
("can this user manage or act as this profile"), resolve a user's primary
profile, and keep the one-primary-profile-per-user-per-community rule.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from sqlalchemy.orm import Session

from commune.core.settings import settings
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
    Profile,
    ProfileOwnership,
    ProfileRole,
)
from commune.services.lookups import (
    find_active_membership,
    get_community_or_404,
    get_profile_or_404,
)

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

__all__ = [
    "USERNAME_PATTERN",
    "validate_profile_identity",
    "get_profile_ownership",
    "can_manage_profile",
    "can_use_profile",
    "get_user_profiles",
    "get_profile_users",
    "get_user_ids_from_profile",
    "get_user_profiles_in_community",
    "get_owned_profiles",
    "get_primary_profile_id_for_user_in_community",
    "get_primary_profile_ids",
    "find_profile_by_username",
    "is_username_in_use",
    "is_username_reserved_by_application",
    "check_username_availability",
    "assign_primary_profile",
    "create_profile",
    "set_primary_profile",
]


def validate_profile_identity(name: str, username: str) -> tuple[str, str]:
    """Normalise and validate a requested profile name and username.

    Returns:
        The stripped name and the username, unchanged.

    Raises:
        ValidationError: If either value is empty, too long, or the username
            contains characters other than letters, digits and underscores.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Profile name is required")
    if len(name) > settings.max_profile_name_length:
        raise ValidationError("Profile name is too long")
    if not username or len(username) > settings.max_username_length:
        raise ValidationError(
            f"Username must be between 1 and {settings.max_username_length} characters"
        )
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Username may only contain letters, digits and underscores")
    return name, username


def get_profile_ownership(db: Session, user_id: int, profile_id: int) -> ProfileOwnership | None:
    """Return the user's ownership row on a profile, if any."""
    return db.query(ProfileOwnership).filter(
        ProfileOwnership.user_id == user_id,
        ProfileOwnership.profile_id == profile_id,
    ).first()


def can_manage_profile(db: Session, user_id: int, profile_id: int) -> bool:
    """Only owners may manage a profile."""
    ownership = get_profile_ownership(db, user_id, profile_id)
    return ownership is not None and ownership.role is ProfileRole.OWNER


def can_use_profile(db: Session, user_id: int, profile_id: int) -> bool:
    """Owners and admins may act as a profile."""
    return get_profile_ownership(db, user_id, profile_id) is not None


def get_user_profiles(
    db: Session,
    user_id: int,
    community_id: int | None = None,
) -> list[ProfileOwnership]:
    """Return every ownership row the user holds, with the profile attached.

    When ``community_id`` is given only non-deleted profiles of that community
    are returned.
    """
    query = db.query(ProfileOwnership).join(ProfileOwnership.profile).filter(
        ProfileOwnership.user_id == user_id,
    )
    if community_id is not None:
        query = query.filter(
            Profile.community_id == community_id,
            Profile.deleted_at.is_(None),
        )
    return query.order_by(Profile.created_at, Profile.id).all()


def get_profile_users(db: Session, profile_id: int) -> list[ProfileOwnership]:
    """Return every ownership row on a profile, owner first."""
    rows = db.query(ProfileOwnership).filter(ProfileOwnership.profile_id == profile_id).all()
    return sorted(rows, key=lambda row: (row.role is not ProfileRole.OWNER, row.id))


def get_user_ids_from_profile(db: Session, profile_id: int) -> list[int]:
    """Return the ids of users holding any access to a profile."""
    ownerships = get_profile_users(db, profile_id)
    if not ownerships:
        raise NotFoundError("Profile not found")
    return [ownership.user_id for ownership in ownerships]


def get_user_profiles_in_community(db: Session, user_id: int, community_id: int) -> list[Profile]:
    """Return the active profiles a user can act as, oldest first."""
    return (
        db.query(Profile)
        .join(ProfileOwnership, ProfileOwnership.profile_id == Profile.id)
        .filter(
            ProfileOwnership.user_id == user_id,
            Profile.community_id == community_id,
            Profile.activated_at.is_not(None),
            Profile.deleted_at.is_(None),
        )
        .order_by(Profile.created_at, Profile.id)
        .all()
    )


def get_owned_profiles(db: Session, user_id: int, community_id: int) -> list[Profile]:
    """Return non-deleted profiles the user created in a community, active or not."""
    return (
        db.query(Profile)
        .join(ProfileOwnership, ProfileOwnership.profile_id == Profile.id)
        .filter(
            ProfileOwnership.user_id == user_id,
            ProfileOwnership.role == ProfileRole.OWNER,
            Profile.community_id == community_id,
            Profile.deleted_at.is_(None),
        )
        .order_by(Profile.created_at, Profile.id)
        .all()
    )


def get_primary_profile_id_for_user_in_community(
    db: Session,
    user_id: int,
    community_id: int,
) -> int | None:
    """Return the user's primary profile id in a community.

    Falls back to the first accessible profile when none is flagged primary.
    """
    candidates = [ownership.profile for ownership in get_user_profiles(db, user_id, community_id)]
    if not candidates:
        return None
    for profile in candidates:
        if profile.is_primary:
            return profile.id
    return candidates[0].id


def get_primary_profile_ids(
    db: Session,
    pairs: Iterable[tuple[int, int]],
) -> dict[tuple[int, int], int | None]:
    """Batch form of ``get_primary_profile_id_for_user_in_community``.

    Args:
        pairs: ``(user_id, community_id)`` tuples.

    Returns:
        Mapping from each requested pair to its primary profile id or None.
    """
    pairs = list(pairs)
    if not pairs:
        return {}

    user_ids = {user_id for user_id, _ in pairs}
    community_ids = {community_id for _, community_id in pairs}
    rows = (
        db.query(ProfileOwnership.user_id, Profile.community_id, Profile.id, Profile.is_primary)
        .join(Profile, ProfileOwnership.profile_id == Profile.id)
        .filter(
            ProfileOwnership.user_id.in_(user_ids),
            Profile.community_id.in_(community_ids),
            Profile.deleted_at.is_(None),
        )
        .order_by(Profile.created_at, Profile.id)
        .all()
    )

    grouped: dict[tuple[int, int], list[tuple[int, bool]]] = {}
    for user_id, community_id, profile_id, is_primary in rows:
        grouped.setdefault((user_id, community_id), []).append((profile_id, is_primary))

    result: dict[tuple[int, int], int | None] = {}
    for pair in pairs:
        entries = grouped.get(pair, [])
        primary = next((profile_id for profile_id, is_primary in entries if is_primary), None)
        if primary is None and entries:
            primary = entries[0][0]
        result[pair] = primary
    return result


def find_profile_by_username(db: Session, community_id: int, username: str) -> Profile | None:
    """Return the non-deleted profile holding ``username``, active or not."""
    return db.query(Profile).filter(
        Profile.community_id == community_id,
        Profile.username == username,
        Profile.deleted_at.is_(None),
    ).first()


def is_username_in_use(db: Session, community_id: int, username: str) -> bool:
    """Return True when an active, non-deleted profile uses ``username``."""
    return db.query(Profile.id).filter(
        Profile.community_id == community_id,
        Profile.username == username,
        Profile.activated_at.is_not(None),
        Profile.deleted_at.is_(None),
    ).first() is not None


def is_username_reserved_by_application(
    db: Session,
    community_id: int,
    username: str,
    *,
    exclude_user_id: int | None = None,
) -> bool:
    """Return True when a pending application requests ``username``."""
    query = db.query(CommunityApplication.id).filter(
        CommunityApplication.community_id == community_id,
        CommunityApplication.profile_username == username,
        CommunityApplication.status == ApplicationStatus.PENDING,
    )
    if exclude_user_id is not None:
        query = query.filter(CommunityApplication.user_id != exclude_user_id)
    return query.first() is not None


def check_username_availability(db: Session, community_id: int, username: str) -> bool:
    """Return True when no active profile in the community uses ``username``."""
    return not is_username_in_use(db, community_id, username)


def assign_primary_profile(db: Session, user_id: int, community_id: int, profile: Profile) -> None:
    """Flag ``profile`` primary and clear the flag on the user's other owned profiles.

    Runs inside the caller's transaction; nothing is committed here.
    """
    for other in get_owned_profiles(db, user_id, community_id):
        if other.id != profile.id and other.is_primary:
            other.is_primary = False
    db.flush()
    profile.is_primary = True
    db.flush()


def create_profile(
    db: Session,
    user_id: int,
    community_id: int,
    *,
    name: str,
    username: str,
    bio: str | None = None,
    primary: bool = False,
) -> Profile:
    """Create an additional profile for an active member.

    Raises:
        ForbiddenError: If the user is not an active member of the community.
        ConflictError: If the username is held by any non-deleted profile or
            requested by a pending application.
    """
    name, username = validate_profile_identity(name, username)
    with transaction(db, conflict_message="Username is already taken"):
        get_community_or_404(db, community_id)
        if find_active_membership(db, user_id, community_id) is None:
            raise ForbiddenError("Not a member of this community")
        if find_profile_by_username(db, community_id, username) is not None:
            raise ConflictError("Username is already taken")
        if is_username_reserved_by_application(db, community_id, username):
            raise ConflictError("Username is reserved by a pending application")

        profile = Profile(
            community_id=community_id,
            name=name,
            username=username,
            bio=bio,
            is_primary=False,
            activated_at=utcnow(),
        )
        db.add(profile)
        db.flush()
        db.add(
            ProfileOwnership(
                profile_id=profile.id,
                user_id=user_id,
                role=ProfileRole.OWNER,
                created_by_id=user_id,
            )
        )
        db.flush()
        if primary:
            assign_primary_profile(db, user_id, community_id, profile)

    logger.info("User %s created profile %s in community %s", user_id, profile.id, community_id)
    return profile


def set_primary_profile(db: Session, user_id: int, profile_id: int) -> Profile:
    """Make one of the user's owned profiles their primary identity."""
    with transaction(db):
        profile = get_profile_or_404(db, profile_id)
        if not can_manage_profile(db, user_id, profile_id):
            raise ForbiddenError("You do not have permission to manage this profile")
        if not profile.is_active:
            raise InvalidStateError("Only active profiles can be primary")
        assign_primary_profile(db, user_id, profile.community_id, profile)
    return profile
