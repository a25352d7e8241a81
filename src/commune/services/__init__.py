"""Business logic services for the Commune application."""

from .applications import (
    approve_membership_application,
    reject_membership_application,
    revoke_application_review,
    submit_application,
)
from .membership import (
    deactivate_membership,
    leave_community,
    remove_member,
    update_member_role,
)
from .profile_sharing import remove_user_from_profile_sharing, share_profile_with_user
from .profiles import (
    can_manage_profile,
    can_use_profile,
    get_primary_profile_id_for_user_in_community,
    get_profile_users,
    get_user_profiles,
)

__all__ = [
    "submit_application",
    "approve_membership_application",
    "reject_membership_application",
    "revoke_application_review",
    "deactivate_membership",
    "leave_community",
    "remove_member",
    "update_member_role",
    "share_profile_with_user",
    "remove_user_from_profile_sharing",
    "get_user_profiles",
    "get_profile_users",
    "can_manage_profile",
    "can_use_profile",
    "get_primary_profile_id_for_user_in_community",
]
