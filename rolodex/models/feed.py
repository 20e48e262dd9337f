"""Activity feed preferences."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rolodex.models.base import Base, utcnow


class HiddenFeedContact(Base):
    """Marks a contact whose events should not appear in the owner's feed."""

    __tablename__ = "hidden_feed_contacts"
    __table_args__ = (
        UniqueConstraint("owner_id", "contact_id", name="uq_hidden_feed_owner_contact"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    contact_id: Mapped[int] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
