"""SQLAlchemy model for community tenants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from commune.db.session import Base
from commune.db.time import as_utc, utcnow


class Community(Base):
    """Tenant that scopes memberships, profiles and applications."""

    __tablename__ = "community"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Open-ended on either side when null.
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def is_active(self, now: datetime | None = None) -> bool:
        """Return True when ``now`` falls inside the community's date window."""
        now = as_utc(now or utcnow())
        if self.starts_at is not None and now < as_utc(self.starts_at):
            return False
        if self.ends_at is not None and now > as_utc(self.ends_at):
            return False
        return True

    def has_ended(self, now: datetime | None = None) -> bool:
        """Return True once the community's window has closed."""
        if self.ends_at is None:
            return False
        return as_utc(now or utcnow()) > as_utc(self.ends_at)
