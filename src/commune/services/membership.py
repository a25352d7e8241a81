"""Membership engine: activation, removal and role transitions.

A community always has exactly one active owner once it exists. Owners
cannot leave or be removed; the role moves only by transfer, which demotes
the acting owner to moderator in the same transaction. Demoting a moderator
to member revokes the sharing grants they hold in the community.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from commune.db.transaction import transaction
from commune.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from commune.models import CommunityRole, Membership, Profile
from commune.services.lookups import find_active_membership, get_community_or_404
from commune.services.profile_sharing import revoke_shared_profile_access
from commune.services.profiles import get_owned_profiles, get_user_profiles_in_community

logger = logging.getLogger(__name__)

__all__ = [
    "MemberWithProfiles",
    "get_membership",
    "get_user_membership",
    "is_user_community_owner",
    "validate_membership_role",
    "get_active_owner",
    "get_community_members",
    "deactivate_membership",
    "leave_community",
    "remove_member",
    "update_member_role",
    "transfer_ownership",
]


@dataclass
class MemberWithProfiles:
    """An active membership together with the profiles its user can act as."""

    membership: Membership
    profiles: list[Profile] = field(default_factory=list)


def get_membership(db: Session, membership_id: int, *, for_update: bool = False) -> Membership:
    """Return a membership by id or raise ``NotFoundError``."""
    query = db.query(Membership).filter(Membership.id == membership_id)
    if for_update:
        query = query.with_for_update()
    membership = query.first()
    if membership is None:
        raise NotFoundError("Membership not found")
    return membership


def get_user_membership(db: Session, user_id: int, community_id: int) -> Membership | None:
    """Return the user's active membership in a community, if any."""
    return find_active_membership(db, user_id, community_id)


def is_user_community_owner(db: Session, user_id: int, community_id: int) -> bool:
    """Return True when the user is the community's active owner."""
    membership = get_user_membership(db, user_id, community_id)
    return membership is not None and membership.role is CommunityRole.OWNER


def validate_membership_role(
    db: Session,
    user_id: int,
    community_id: int,
    roles: Iterable[CommunityRole | str],
    *,
    for_update: bool = False,
) -> Membership:
    """Return the user's active membership if it holds one of ``roles``.

    Raises:
        ForbiddenError: If the user is not an active member or holds another role.
    """
    allowed = {CommunityRole(role) for role in roles}
    membership = find_active_membership(db, user_id, community_id, for_update=for_update)
    if membership is None:
        raise ForbiddenError("Not a member of this community")
    if membership.role not in allowed:
        raise ForbiddenError("Access denied")
    return membership


def get_active_owner(db: Session, community_id: int) -> Membership | None:
    """Return the community's active owner membership."""
    return db.query(Membership).filter(
        Membership.community_id == community_id,
        Membership.role == CommunityRole.OWNER,
        Membership.activated_at.is_not(None),
    ).first()


def get_community_members(
    db: Session,
    community_id: int,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> list[MemberWithProfiles]:
    """List active members, newest first, with their active profiles."""
    get_community_or_404(db, community_id)
    query = (
        db.query(Membership)
        .filter(
            Membership.community_id == community_id,
            Membership.activated_at.is_not(None),
        )
        .order_by(Membership.created_at.desc(), Membership.id.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    return [
        MemberWithProfiles(
            membership=membership,
            profiles=get_user_profiles_in_community(db, membership.user_id, community_id),
        )
        for membership in query.all()
    ]


def _deactivate(db: Session, membership: Membership) -> None:
    """Deactivate a membership and cascade to the user's profiles in the community.

    Every profile the user owns there is deactivated, including ones shared
    with other users, and the user's own admin grants are revoked.
    """
    if not membership.is_active:
        raise InvalidStateError("Membership is not active")
    if membership.role is CommunityRole.OWNER:
        raise ForbiddenError("The community owner cannot be deactivated; transfer ownership first")

    membership.activated_at = None
    for profile in get_owned_profiles(db, membership.user_id, membership.community_id):
        profile.activated_at = None
    db.flush()
    revoke_shared_profile_access(db, membership.user_id, membership.community_id)


def deactivate_membership(db: Session, membership_id: int) -> Membership:
    """Deactivate a membership without deleting its row."""
    with transaction(db):
        membership = get_membership(db, membership_id, for_update=True)
        _deactivate(db, membership)
    logger.info(
        "Deactivated membership %s (user %s, community %s)",
        membership.id,
        membership.user_id,
        membership.community_id,
    )
    return membership


def leave_community(db: Session, user_id: int, community_id: int) -> Membership:
    """Let a non-owner member leave a community.

    Raises:
        NotFoundError: If the user is not an active member.
        ForbiddenError: If the user is the owner.
    """
    with transaction(db):
        membership = find_active_membership(db, user_id, community_id, for_update=True)
        if membership is None:
            raise NotFoundError("Not a member of this community")
        if membership.role is CommunityRole.OWNER:
            raise ForbiddenError("Owners cannot leave the community; transfer ownership first")
        _deactivate(db, membership)
    logger.info("User %s left community %s", user_id, community_id)
    return membership


def _require_active_owner(db: Session, user_id: int, community_id: int, action: str) -> Membership:
    membership = find_active_membership(db, user_id, community_id, for_update=True)
    if membership is None or membership.role is not CommunityRole.OWNER:
        raise ForbiddenError(f"Only the community owner can {action}")
    return membership


def _get_target(db: Session, community_id: int, membership_id: int) -> Membership:
    target = get_membership(db, membership_id, for_update=True)
    if target.community_id != community_id:
        raise NotFoundError("Membership not found")
    return target


def remove_member(
    db: Session,
    community_id: int,
    membership_id: int,
    acting_user_id: int,
) -> Membership:
    """Deactivate another member's membership on the owner's behalf."""
    with transaction(db):
        _require_active_owner(db, acting_user_id, community_id, "remove members")
        target = _get_target(db, community_id, membership_id)
        if target.role is CommunityRole.OWNER:
            raise ForbiddenError("The community owner cannot be removed")
        _deactivate(db, target)
    logger.info(
        "User %s removed membership %s from community %s",
        acting_user_id,
        membership_id,
        community_id,
    )
    return target


def update_member_role(
    db: Session,
    community_id: int,
    membership_id: int,
    new_role: CommunityRole | str,
    acting_user_id: int,
) -> Membership:
    """Change a member's role; promoting to owner transfers ownership.

    Returns:
        The target membership after the change.

    Raises:
        ValidationError: If ``new_role`` is not a known role.
        ForbiddenError: If the acting user is not the active owner, or the
            target is the owner and ``new_role`` is not a transfer.
        NotFoundError: If the target membership is not in the community.
        InvalidStateError: If the target is inactive or already the owner.
    """
    try:
        new_role = CommunityRole(new_role)
    except ValueError as exc:
        raise ValidationError(f"Unknown role: {new_role}") from exc

    with transaction(db, conflict_message="Ownership changed concurrently"):
        acting = _require_active_owner(db, acting_user_id, community_id, "update member roles")
        target = _get_target(db, community_id, membership_id)
        if not target.is_active:
            raise InvalidStateError("Membership is not active")

        if new_role is CommunityRole.OWNER:
            if target.role is CommunityRole.OWNER:
                raise InvalidStateError("Member is already the owner")
            # Demote first so the single-active-owner index never sees two owners.
            acting.role = CommunityRole.MODERATOR
            db.flush()
            target.role = CommunityRole.OWNER
            db.flush()
            logger.info(
                "Ownership of community %s transferred from membership %s to %s",
                community_id,
                acting.id,
                target.id,
            )
            return target

        if target.role is CommunityRole.OWNER:
            raise ForbiddenError("The owner's role cannot be changed; transfer ownership first")

        demoted_to_member = (
            target.role is CommunityRole.MODERATOR and new_role is CommunityRole.MEMBER
        )
        previous_role = target.role
        target.role = new_role
        db.flush()
        if demoted_to_member:
            revoke_shared_profile_access(db, target.user_id, community_id)

    logger.info(
        "Membership %s role changed from %s to %s",
        target.id,
        previous_role.value,
        new_role.value,
    )
    return target


def transfer_ownership(
    db: Session,
    community_id: int,
    current_owner_id: int,
    new_owner_id: int,
) -> Membership:
    """Hand ownership to another active member, addressed by user id."""
    target = find_active_membership(db, new_owner_id, community_id)
    if target is None:
        raise NotFoundError("New owner is not a member of this community")
    return update_member_role(db, community_id, target.id, CommunityRole.OWNER, current_owner_id)
