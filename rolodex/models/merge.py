"""Audit record written once per contact merge."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rolodex.models.base import Base, utcnow


class ContactMergeRecord(Base):
    """Which contact absorbed which, and how much it absorbed."""

    __tablename__ = "contact_merges"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    primary_contact_id: Mapped[int] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    primary_contact_name: Mapped[str] = mapped_column(String(250), nullable=False)
    secondary_contact_id: Mapped[int | None] = mapped_column(
        ForeignKey("contacts.id", ondelete="SET NULL")
    )
    secondary_contact_name: Mapped[str] = mapped_column(String(250), nullable=False)
    emails_merged: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    phones_merged: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    tags_merged: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True, nullable=False
    )
