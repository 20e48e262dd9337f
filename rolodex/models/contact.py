"""Contact, email and phone model definitions."""
from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolodex.models.base import Base, utcnow
from rolodex.models.tag import contact_tags

if TYPE_CHECKING:
    from rolodex.models.tag import Tag


class Contact(Base):
    """A person tracked by an owner's relationship manager."""

    __tablename__ = "contacts"
    __table_args__ = (Index("ix_contacts_owner_name", "owner_id", "last_name", "first_name"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    company: Mapped[str | None] = mapped_column(String(200))
    title: Mapped[str | None] = mapped_column(String(200))
    birthday: Mapped[date | None] = mapped_column(Date())
    linkedin_url: Mapped[str | None] = mapped_column(String(500))
    notes: Mapped[str | None] = mapped_column(Text())
    is_deleted: Mapped[bool] = mapped_column(
        Boolean(), default=False, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    emails: Mapped[list["ContactEmail"]] = relationship(
        back_populates="contact",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ContactEmail.id",
    )
    phones: Mapped[list["ContactPhone"]] = relationship(
        back_populates="contact",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ContactPhone.id",
    )
    tags: Mapped[list["Tag"]] = relationship(
        secondary=contact_tags,
        lazy="selectin",
        order_by="Tag.name",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ContactEmail(Base):
    """An email address attached to a contact."""

    __tablename__ = "contact_emails"

    id: Mapped[int] = mapped_column(primary_key=True)
    contact_id: Mapped[int] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    address: Mapped[str] = mapped_column(String(320), index=True, nullable=False)
    label: Mapped[str] = mapped_column(String(40), nullable=False, default="other")
    is_primary: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=False)

    contact: Mapped["Contact"] = relationship(back_populates="emails")


class ContactPhone(Base):
    """A phone number attached to a contact."""

    __tablename__ = "contact_phones"

    id: Mapped[int] = mapped_column(primary_key=True)
    contact_id: Mapped[int] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    number: Mapped[str] = mapped_column(String(40), nullable=False)
    label: Mapped[str] = mapped_column(String(40), nullable=False, default="other")
    is_primary: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=False)

    contact: Mapped["Contact"] = relationship(back_populates="phones")
