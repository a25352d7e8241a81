"""SQLAlchemy model binding users to communities."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commune.db.session import Base
from commune.db.time import utcnow
from commune.models.user import User


class CommunityRole(str, enum.Enum):
    """Role a member holds within a community."""

    OWNER = "owner"
    MODERATOR = "moderator"
    MEMBER = "member"


class MembershipStatus(str, enum.Enum):
    """Explicit activation state derived from ``Membership.activated_at``."""

    INACTIVE = "inactive"
    ACTIVE = "active"


class Membership(Base):
    """The single row relating a user to a community.

    Rows are reused across leave and rejoin cycles; activation is toggled via
    ``activated_at`` and the role survives deactivation.
    """

    __tablename__ = "membership"
    __table_args__ = (
        UniqueConstraint("user_id", "community_id", name="uq_membership_user_community"),
        UniqueConstraint("application_id", name="uq_membership_application"),
        Index(
            "ix_one_active_owner_per_community",
            "community_id",
            unique=True,
            postgresql_where=text("role = 'owner' AND activated_at IS NOT NULL"),
            sqlite_where=text("role = 'owner' AND activated_at IS NOT NULL"),
        ),
        Index("ix_membership_community_active", "community_id", "activated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user_account.id"), nullable=False)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id"), nullable=False
    )
    role: Mapped[CommunityRole] = mapped_column(
        Enum(
            CommunityRole,
            name="community_role",
            native_enum=False,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=CommunityRole.MEMBER,
    )
    # Null while inactive (never activated, left, removed or revoked).
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Application that most recently activated this membership.
    application_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community_application.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped[User] = relationship("User")

    @property
    def status(self) -> MembershipStatus:
        """Return the membership's activation state."""
        if self.activated_at is None:
            return MembershipStatus.INACTIVE
        return MembershipStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        """Return True while the membership is active."""
        return self.status is MembershipStatus.ACTIVE
