"""Contact snapshots, field-level diffs and the version history."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from rolodex.core.errors import (CONTACT_NOT_FOUND, VERSION_NOT_FOUND, NotFoundError,
                                 ValidationError)
from rolodex.models import Contact, ContactVersion
from rolodex.repositories.contacts import ContactRepository
from rolodex.repositories.versions import VersionRepository
from rolodex.schemas.version import (ContactChanges, ContactSnapshot, FieldChange,
                                     SnapshotEmail, SnapshotPhone)

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "title",
    "birthday",
    "linkedin_url",
    "notes",
    "is_deleted",
)
COLLECTION_FIELDS = ("emails", "phones", "tags")
TRACKED_FIELDS = SCALAR_FIELDS + COLLECTION_FIELDS


def canonical_emails(emails: Iterable[Any]) -> tuple[SnapshotEmail, ...]:
    entries = [
        SnapshotEmail(address=item.address, label=item.label, is_primary=bool(item.is_primary))
        for item in emails
    ]
    return tuple(
        sorted(
            entries,
            key=lambda item: (item.address.casefold(), item.address, item.label, item.is_primary),
        )
    )


def canonical_phones(phones: Iterable[Any]) -> tuple[SnapshotPhone, ...]:
    entries = [
        SnapshotPhone(number=item.number, label=item.label, is_primary=bool(item.is_primary))
        for item in phones
    ]
    return tuple(sorted(entries, key=lambda item: (item.number, item.label, item.is_primary)))


def canonical_tags(tags: Iterable[Any]) -> tuple[str, ...]:
    names = [getattr(tag, "name", tag) for tag in tags]
    return tuple(sorted(names, key=lambda name: (name.casefold(), name)))


def snapshot_of(contact: Contact) -> ContactSnapshot:
    """Capture the versionable state of a loaded contact."""

    return ContactSnapshot(
        first_name=contact.first_name,
        last_name=contact.last_name,
        company=contact.company,
        title=contact.title,
        birthday=contact.birthday,
        linkedin_url=contact.linkedin_url,
        notes=contact.notes,
        is_deleted=bool(contact.is_deleted),
        emails=canonical_emails(contact.emails),
        phones=canonical_phones(contact.phones),
        tags=canonical_tags(contact.tags),
    )


def load_snapshot(raw: Mapping[str, Any] | ContactSnapshot | None) -> ContactSnapshot | None:
    """Rebuild a stored snapshot, or ``None`` when it is missing or malformed."""

    if raw is None or isinstance(raw, ContactSnapshot):
        return raw
    try:
        return ContactSnapshot.model_validate(raw)
    except PydanticValidationError:
        logger.warning("Discarding malformed contact snapshot")
        return None


def diff(
    previous: Mapping[str, Any] | ContactSnapshot | None, current: ContactSnapshot
) -> ContactChanges:
    """Field-level changes between two snapshots.

    A missing or unreadable ``previous`` counts as a change to every field.
    Collections are compared in canonical order so reordering alone is not
    a change.
    """

    current_values = _comparable(current)
    baseline = load_snapshot(previous)
    if baseline is None:
        return {
            name: FieldChange(from_=None, to=current_values[name]) for name in TRACKED_FIELDS
        }

    previous_values = _comparable(baseline)
    return {
        name: FieldChange(from_=previous_values[name], to=current_values[name])
        for name in TRACKED_FIELDS
        if previous_values[name] != current_values[name]
    }


def _comparable(snapshot: ContactSnapshot) -> dict[str, Any]:
    canonical = snapshot.model_copy(
        update={
            "emails": canonical_emails(snapshot.emails),
            "phones": canonical_phones(snapshot.phones),
            "tags": canonical_tags(snapshot.tags),
        }
    )
    return canonical.model_dump(mode="json")


def _serialize_changes(changes: ContactChanges) -> dict[str, Any]:
    return {
        name: change.model_dump(mode="json", by_alias=True) for name, change in changes.items()
    }


class VersionEngine:
    """Writes and reads the append-only version history of contacts.

    Writers call ``record_initial_version`` once on creation and
    ``append_version`` inside the same transaction as every later mutation,
    so the contact row and its history never disagree.
    """

    def __init__(self, versions: VersionRepository, contacts: ContactRepository) -> None:
        self.versions = versions
        self.contacts = contacts

    async def record_initial_version(self, contact: Contact) -> ContactVersion:
        snapshot = snapshot_of(contact)
        version = await self.versions.append(
            contact.id, 1, snapshot.model_dump(mode="json"), {}
        )
        logger.info(
            "Contact version recorded",
            extra={"contact_id": contact.id, "version": 1, "changed_fields": []},
        )
        return version

    async def append_version(
        self,
        contact_id: int,
        previous: Mapping[str, Any] | ContactSnapshot | None,
        current: ContactSnapshot,
    ) -> ContactVersion | None:
        """Store ``current`` as the next version unless nothing changed."""

        changes = diff(previous, current)
        if not changes:
            logger.debug("Contact unchanged; no version written", extra={"contact_id": contact_id})
            return None

        number = await self.versions.latest_number(contact_id) + 1
        version = await self.versions.append(
            contact_id, number, current.model_dump(mode="json"), _serialize_changes(changes)
        )
        logger.info(
            "Contact version recorded",
            extra={
                "contact_id": contact_id,
                "version": number,
                "changed_fields": sorted(changes),
            },
        )
        return version

    async def get_versions(self, owner_id: str, contact_id: int) -> list[ContactVersion]:
        await self._require_contact(owner_id, contact_id)
        return await self.versions.list_for_contact(contact_id)

    async def get_version(self, owner_id: str, contact_id: int, number: int) -> ContactVersion:
        if number < 1:
            raise ValidationError("Version numbers start at 1")
        await self._require_contact(owner_id, contact_id)
        version = await self.versions.get_number(contact_id, number)
        if version is None:
            raise NotFoundError(VERSION_NOT_FOUND)
        return version

    async def _require_contact(self, owner_id: str, contact_id: int) -> Contact:
        contact = await self.contacts.get_for_owner(owner_id, contact_id)
        if contact is None:
            raise NotFoundError(CONTACT_NOT_FOUND)
        return contact
