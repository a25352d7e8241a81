"""SQLAlchemy model for community join requests."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commune.db.session import Base
from commune.db.time import utcnow
from commune.models.community import Community


class ApplicationStatus(str, enum.Enum):
    """Review state of a community application."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CommunityApplication(Base):
    """Request by a user to join a community under a chosen profile identity.

    Approved applications may be revoked back to pending; rejected ones are
    terminal.
    """

    __tablename__ = "community_application"
    __table_args__ = (
        # One open request per (user, community); losing racers hit this index.
        Index(
            "ix_unique_pending_application",
            "user_id",
            "community_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        CheckConstraint(
            "status != 'rejected' OR rejection_reason IS NOT NULL",
            name="ck_application_rejection_reason",
        ),
        CheckConstraint(
            "status = 'pending' OR (reviewed_by_id IS NOT NULL AND reviewed_at IS NOT NULL)",
            name="ck_application_reviewed",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("community.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user_account.id"), nullable=False)
    profile_name: Mapped[str] = mapped_column(Text, nullable=False)
    profile_username: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(
            ApplicationStatus,
            name="application_status",
            native_enum=False,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    reviewed_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    community: Mapped[Community] = relationship("Community")
