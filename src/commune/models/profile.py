"""SQLAlchemy models for per-community profiles and their owners."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commune.db.session import Base
from commune.db.time import utcnow
from commune.models.user import User


class ProfileRole(str, enum.Enum):
    """Access level a user holds on a profile."""

    OWNER = "owner"
    ADMIN = "admin"


class Profile(Base):
    """Display identity scoped to a single community.

    A new row is created for every join cycle; older rows stay behind,
    deactivated, and keep their username reserved.
    """

    __tablename__ = "profile"
    __table_args__ = (
        # Deactivated profiles still hold their username; only deletion frees it.
        Index(
            "ix_unique_username_per_community",
            "community_id",
            "username",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    # At most one per user per community; maintained by the services.
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    ownerships: Mapped[list[ProfileOwnership]] = relationship(
        "ProfileOwnership",
        back_populates="profile",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        """Return True for activated, non-deleted profiles."""
        return self.activated_at is not None and self.deleted_at is None


class ProfileOwnership(Base):
    """Grant of profile access to a user.

    Each profile has exactly one ``owner`` row (its creator); ``admin`` rows
    are sharing grants.
    """

    __tablename__ = "profile_ownership"
    __table_args__ = (
        UniqueConstraint("profile_id", "user_id", name="uq_profile_ownership_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profile.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False, index=True
    )
    role: Mapped[ProfileRole] = mapped_column(
        Enum(
            ProfileRole,
            name="profile_role",
            native_enum=False,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    created_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    profile: Mapped[Profile] = relationship("Profile", back_populates="ownerships")
    user: Mapped[User] = relationship("User", foreign_keys=[user_id])
