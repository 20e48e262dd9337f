"""Contact lifecycle: the one write path shared by people and automated writers."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.db import transaction
from rolodex.core.errors import (CONTACT_NOT_FOUND, InvalidStateError, NotFoundError,
                                 ValidationError)
from rolodex.models import Contact, ContactVersion
from rolodex.models.base import utcnow
from rolodex.repositories.contacts import SORT_COLUMNS, ContactRepository
from rolodex.repositories.versions import VersionRepository
from rolodex.schemas.contact import ContactCreate, ContactUpdate, EmailEntry, PhoneEntry
from rolodex.schemas.notes import NoteUpdate
from rolodex.schemas.version import SnapshotEmail, SnapshotPhone
from rolodex.services.notes import apply_update, parse_notes, serialize_notes
from rolodex.services.tags import TagService
from rolodex.services.versioning import VersionEngine, load_snapshot, snapshot_of

logger = logging.getLogger(__name__)

SCALAR_FIELDS = ("first_name", "last_name", "company", "title", "birthday", "linkedin_url", "notes")


def _primary_index(flags: list[bool | None]) -> int:
    for index, flag in enumerate(flags):
        if flag:
            return index
    return 0


def prepare_emails(entries: Iterable[EmailEntry | SnapshotEmail]) -> list[SnapshotEmail]:
    """Fix primary flags so exactly one email is primary.

    The first entry marked primary wins; with none marked the first entry
    is promoted.
    """

    items = list(entries)
    chosen = _primary_index([item.is_primary for item in items])
    return [
        SnapshotEmail(address=str(item.address), label=item.label, is_primary=index == chosen)
        for index, item in enumerate(items)
    ]


def prepare_phones(entries: Iterable[PhoneEntry | SnapshotPhone]) -> list[SnapshotPhone]:
    items = list(entries)
    chosen = _primary_index([item.is_primary for item in items])
    return [
        SnapshotPhone(number=item.number, label=item.label, is_primary=index == chosen)
        for index, item in enumerate(items)
    ]


class ContactService:
    """Creates, edits, deletes and reads an owner's contacts.

    Every mutation runs in its own transaction, locks the contact row first
    and appends to the version history before committing.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        contacts: ContactRepository | None = None,
        versions: VersionRepository | None = None,
        tags: TagService | None = None,
    ) -> None:
        self.session = session
        self.contacts = contacts or ContactRepository(session)
        self.tags = tags or TagService(session)
        self.versions = VersionEngine(versions or VersionRepository(session), self.contacts)

    async def create_contact(self, owner_id: str, payload: ContactCreate) -> Contact:
        async with transaction(self.session):
            tags = await self.tags.find_or_create_tags(owner_id, payload.tags)
            contact = await self.contacts.create(
                owner_id,
                emails=prepare_emails(payload.emails),
                phones=prepare_phones(payload.phones),
                tags=tags,
                **{name: getattr(payload, name) for name in SCALAR_FIELDS},
            )
            await self.versions.record_initial_version(contact)

        logger.info("Contact created", extra={"owner_id": owner_id, "contact_id": contact.id})
        return contact

    async def update_contact(
        self,
        owner_id: str,
        contact_id: int,
        payload: ContactUpdate,
        *,
        notes_update: NoteUpdate | None = None,
    ) -> Contact:
        """Apply the fields set on ``payload`` and record a version if anything changed.

        ``notes_update`` is applied to the notes read under the row lock, so
        concurrent structured notes writes never drop each other's entries.
        """

        async with transaction(self.session):
            contact = await self._lock_active(owner_id, contact_id)
            previous = snapshot_of(contact)

            values: dict[str, Any] = {
                name: getattr(payload, name) for name in payload.model_fields_set
            }
            if notes_update is not None:
                document = apply_update(parse_notes(contact.notes), notes_update)
                values["notes"] = serialize_notes(document) or None

            await self._apply(owner_id, contact, values)
            await self.session.flush()
            version = await self.versions.append_version(
                contact.id, previous, snapshot_of(contact)
            )
            if version is not None:
                contact.updated_at = utcnow()

        logger.info(
            "Contact updated",
            extra={
                "owner_id": owner_id,
                "contact_id": contact.id,
                "version": version.version if version is not None else None,
            },
        )
        return contact

    async def delete_contact(self, owner_id: str, contact_id: int) -> None:
        async with transaction(self.session):
            contact = await self._lock_active(owner_id, contact_id)
            await self.mark_deleted(contact)
        logger.info("Contact deleted", extra={"owner_id": owner_id, "contact_id": contact_id})

    async def mark_deleted(self, contact: Contact) -> ContactVersion | None:
        """Soft-delete a locked contact and record the audit version.

        Runs inside the caller's transaction.
        """

        previous = snapshot_of(contact)
        contact.is_deleted = True
        contact.updated_at = utcnow()
        await self.session.flush()
        return await self.versions.append_version(contact.id, previous, snapshot_of(contact))

    async def get_contact(self, owner_id: str, contact_id: int) -> Contact:
        contact = await self.contacts.get_for_owner(owner_id, contact_id)
        if contact is None or contact.is_deleted:
            raise NotFoundError(CONTACT_NOT_FOUND)
        return contact

    async def list_contacts(
        self,
        owner_id: str,
        *,
        search: str | None = None,
        sort_by: str = "last_name",
        sort_order: str = "asc",
        skip: int = 0,
        take: int = 50,
    ) -> tuple[list[Contact], int]:
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(f"Cannot sort contacts by '{sort_by}'")
        if sort_order not in {"asc", "desc"}:
            raise ValidationError("Sort order must be 'asc' or 'desc'")
        if skip < 0 or take < 1:
            raise ValidationError("skip must be >= 0 and take must be >= 1")
        return await self.contacts.list_for_owner(
            owner_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            take=take,
        )

    async def find_by_email_address(self, owner_id: str, address: str) -> Contact | None:
        matches = await self.contacts.find_by_email(owner_id, address)
        return matches[0] if matches else None

    async def get_versions(self, owner_id: str, contact_id: int) -> list[ContactVersion]:
        return await self.versions.get_versions(owner_id, contact_id)

    async def get_version(self, owner_id: str, contact_id: int, number: int) -> ContactVersion:
        return await self.versions.get_version(owner_id, contact_id, number)

    async def restore_version(self, owner_id: str, contact_id: int, number: int) -> Contact:
        """Re-apply an old snapshot as a new version. History is never truncated."""

        version = await self.versions.get_version(owner_id, contact_id, number)
        snapshot = load_snapshot(version.snapshot)
        if snapshot is None:
            raise ValidationError(f"Version {number} cannot be restored")

        payload = ContactUpdate(
            first_name=snapshot.first_name,
            last_name=snapshot.last_name,
            company=snapshot.company,
            title=snapshot.title,
            birthday=snapshot.birthday,
            linkedin_url=snapshot.linkedin_url,
            notes=snapshot.notes,
            emails=[
                EmailEntry(address=item.address, label=item.label, is_primary=item.is_primary)
                for item in snapshot.emails
            ],
            phones=[
                PhoneEntry(number=item.number, label=item.label, is_primary=item.is_primary)
                for item in snapshot.phones
            ],
            tags=list(snapshot.tags),
        )
        contact = await self.update_contact(owner_id, contact_id, payload)
        logger.info(
            "Contact version restored",
            extra={"owner_id": owner_id, "contact_id": contact_id, "restored_version": number},
        )
        return contact

    async def apply_notes_update(
        self, owner_id: str, contact_id: int, update: NoteUpdate
    ) -> Contact:
        return await self.update_contact(owner_id, contact_id, ContactUpdate(), notes_update=update)

    async def _lock_active(self, owner_id: str, contact_id: int) -> Contact:
        contact = await self.contacts.get_for_owner(owner_id, contact_id, lock=True)
        if contact is None:
            raise NotFoundError(CONTACT_NOT_FOUND)
        if contact.is_deleted:
            raise InvalidStateError("Deleted contacts cannot be modified")
        return contact

    async def _apply(self, owner_id: str, contact: Contact, values: dict[str, Any]) -> None:
        for name in SCALAR_FIELDS:
            if name in values:
                setattr(contact, name, values[name])
        if "emails" in values:
            self.contacts.replace_emails(contact, prepare_emails(values["emails"] or []))
        if "phones" in values:
            self.contacts.replace_phones(contact, prepare_phones(values["phones"] or []))
        if "tags" in values:
            contact.tags = await self.tags.find_or_create_tags(owner_id, values["tags"] or [])
