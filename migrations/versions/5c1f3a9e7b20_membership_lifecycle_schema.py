"""membership lifecycle schema

Revision ID: 5c1f3a9e7b20
Revises:
Create Date: 2026-10-18 09:12:44.318022

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1f3a9e7b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPLICATION_STATUS = sa.Enum(
    "pending", "approved", "rejected", name="application_status", native_enum=False
)
COMMUNITY_ROLE = sa.Enum("owner", "moderator", "member", name="community_role", native_enum=False)
PROFILE_ROLE = sa.Enum("owner", "admin", name="profile_role", native_enum=False)


def _partial(where: str) -> dict[str, sa.TextClause]:
    clause = sa.text(where)
    return {"postgresql_where": clause, "sqlite_where": clause}


def upgrade() -> None:
    """Create accounts, communities, applications, memberships and profiles."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("login_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("login_name"),
    )
    op.create_table(
        "community",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_table(
        "community_application",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("profile_name", sa.Text(), nullable=False),
        sa.Column("profile_username", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", APPLICATION_STATUS, nullable=False),
        sa.Column("reviewed_by_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["reviewed_by_id"], ["user_account.id"]),
        sa.CheckConstraint(
            "status != 'rejected' OR rejection_reason IS NOT NULL",
            name="ck_application_rejection_reason",
        ),
        sa.CheckConstraint(
            "status = 'pending' OR (reviewed_by_id IS NOT NULL AND reviewed_at IS NOT NULL)",
            name="ck_application_reviewed",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_community_application_community_id", "community_application", ["community_id"]
    )
    op.create_index(
        "ix_unique_pending_application",
        "community_application",
        ["user_id", "community_id"],
        unique=True,
        **_partial("status = 'pending'"),
    )
    op.create_table(
        "membership",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("role", COMMUNITY_ROLE, nullable=False),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("application_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"]),
        sa.ForeignKeyConstraint(["application_id"], ["community_application.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "community_id", name="uq_membership_user_community"),
        sa.UniqueConstraint("application_id", name="uq_membership_application"),
    )
    op.create_index(
        "ix_membership_community_active", "membership", ["community_id", "activated_at"]
    )
    op.create_index(
        "ix_one_active_owner_per_community",
        "membership",
        ["community_id"],
        unique=True,
        **_partial("role = 'owner' AND activated_at IS NOT NULL"),
    )
    op.create_table(
        "profile",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_unique_username_per_community",
        "profile",
        ["community_id", "username"],
        unique=True,
        **_partial("deleted_at IS NULL"),
    )
    op.create_table(
        "profile_ownership",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("profile_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", PROFILE_ROLE, nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["profile_id"], ["profile.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("profile_id", "user_id", name="uq_profile_ownership_user"),
    )
    op.create_index("ix_profile_ownership_profile_id", "profile_ownership", ["profile_id"])
    op.create_index("ix_profile_ownership_user_id", "profile_ownership", ["user_id"])


def downgrade() -> None:
    """Drop the membership lifecycle schema."""
    op.drop_index("ix_profile_ownership_user_id", table_name="profile_ownership")
    op.drop_index("ix_profile_ownership_profile_id", table_name="profile_ownership")
    op.drop_table("profile_ownership")
    op.drop_index("ix_unique_username_per_community", table_name="profile")
    op.drop_table("profile")
    op.drop_index("ix_one_active_owner_per_community", table_name="membership")
    op.drop_index("ix_membership_community_active", table_name="membership")
    op.drop_table("membership")
    op.drop_index("ix_unique_pending_application", table_name="community_application")
    op.drop_index("ix_community_application_community_id", table_name="community_application")
    op.drop_table("community_application")
    op.drop_table("community")
    op.drop_table("user_account")
