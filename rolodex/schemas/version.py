"""Typed snapshot and change payloads stored with each contact version."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SnapshotEmail(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    label: str
    is_primary: bool


class SnapshotPhone(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: str
    label: str
    is_primary: bool


class ContactSnapshot(BaseModel):
    """Full versionable state of a contact.

    Collections are held in canonical order (see
    ``rolodex.services.versioning.canonical_emails`` and friends) so two
    snapshots of the same state compare equal.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: int = 1
    first_name: str
    last_name: str
    company: str | None = None
    title: str | None = None
    birthday: date | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    is_deleted: bool = False
    emails: tuple[SnapshotEmail, ...] = ()
    phones: tuple[SnapshotPhone, ...] = ()
    tags: tuple[str, ...] = ()


class FieldChange(BaseModel):
    """Before/after values for one changed field, serialized as ``{from, to}``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: Any = Field(default=None, alias="from")
    to: Any = None


ContactChanges = dict[str, FieldChange]


class ContactVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    version: int
    snapshot: dict[str, Any]
    changes: dict[str, FieldChange]
    created_at: datetime
