"""Merging a duplicate contact into the one that survives."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.db import transaction
from rolodex.core.errors import (CONTACT_NOT_FOUND, InvalidStateError, NotFoundError,
                                 ValidationError)
from rolodex.models import Contact, ContactMergeRecord
from rolodex.repositories.activity import MergeRecordRepository
from rolodex.schemas.merge import MergeResult
from rolodex.schemas.version import SnapshotEmail, SnapshotPhone
from rolodex.services.contacts import ContactService, prepare_emails, prepare_phones
from rolodex.services.duplicates import normalize_email, normalize_phone
from rolodex.services.versioning import snapshot_of

logger = logging.getLogger(__name__)

MERGEABLE_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "title",
    "linkedin_url",
    "birthday",
    "notes",
)
NAME_FIELDS = ("first_name", "last_name")
NOTES_SEPARATOR = "\n\n---\n\n"


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def normalize_resolution(field_resolution: Mapping[str, str] | None) -> dict[str, str]:
    """Expand the ``name`` shorthand and reject unknown fields or sources."""

    resolved: dict[str, str] = {}
    for field_name, source in (field_resolution or {}).items():
        targets = NAME_FIELDS if field_name == "name" else (field_name,)
        for target in targets:
            if target not in MERGEABLE_FIELDS:
                raise ValidationError(f"Field '{field_name}' cannot be resolved during a merge")
            if source not in {"primary", "secondary", "merge"}:
                raise ValidationError(f"Unknown merge source '{source}' for '{field_name}'")
            if source == "merge" and target != "notes":
                raise ValidationError("Only notes can be merged from both contacts")
            resolved[target] = source
    return resolved


def resolve_field(
    primary_value: Any, secondary_value: Any, source: str = "primary"
) -> tuple[Any, set[str]]:
    """Pick the surviving value of one field and the side(s) it came from."""

    if source == "merge":
        sides = [
            (side, value)
            for side, value in (("primary", primary_value), ("secondary", secondary_value))
            if not _is_empty(value)
        ]
        if not sides:
            return primary_value, {"primary"}
        return NOTES_SEPARATOR.join(value for _, value in sides), {side for side, _ in sides}

    if source == "secondary":
        if not _is_empty(secondary_value):
            return secondary_value, {"secondary"}
        return primary_value, {"primary"}

    if _is_empty(primary_value) and not _is_empty(secondary_value):
        return secondary_value, {"secondary"}
    return primary_value, {"primary"}


def combine_emails(
    primary: Iterable[Any], secondary: Iterable[Any], include_secondary: bool = True
) -> tuple[list[SnapshotEmail], int]:
    """Primary's emails followed by the secondary's addresses it lacks."""

    merged = [
        SnapshotEmail(address=item.address, label=item.label, is_primary=bool(item.is_primary))
        for item in primary
    ]
    if not include_secondary:
        return merged, 0

    seen = {normalize_email(item.address) for item in merged}
    added = 0
    for item in secondary:
        key = normalize_email(item.address)
        if key in seen:
            continue
        seen.add(key)
        merged.append(SnapshotEmail(address=item.address, label=item.label, is_primary=False))
        added += 1
    return merged, added


def combine_phones(
    primary: Iterable[Any], secondary: Iterable[Any], include_secondary: bool = True
) -> tuple[list[SnapshotPhone], int]:
    """Primary's phones followed by the secondary's numbers it lacks."""

    merged = [
        SnapshotPhone(number=item.number, label=item.label, is_primary=bool(item.is_primary))
        for item in primary
    ]
    if not include_secondary:
        return merged, 0

    seen = {_phone_key(item.number) for item in merged}
    added = 0
    for item in secondary:
        key = _phone_key(item.number)
        if key in seen:
            continue
        seen.add(key)
        merged.append(SnapshotPhone(number=item.number, label=item.label, is_primary=False))
        added += 1
    return merged, added


def combine_tag_names(
    primary: Iterable[str], secondary: Iterable[str], include_secondary: bool = True
) -> tuple[list[str], int]:
    merged = list(primary)
    if not include_secondary:
        return merged, 0

    seen = {name.casefold() for name in merged}
    added = 0
    for name in secondary:
        if name.casefold() in seen:
            continue
        seen.add(name.casefold())
        merged.append(name)
        added += 1
    return merged, added


def _phone_key(number: str) -> str:
    return normalize_phone(number) or number.strip()


class MergeEngine:
    """Folds a secondary contact into a primary one in a single transaction."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        contact_service: ContactService | None = None,
        merges: MergeRecordRepository | None = None,
    ) -> None:
        self.session = session
        self.contact_service = contact_service or ContactService(session)
        self.merges = merges or MergeRecordRepository(session)

    async def merge(
        self,
        owner_id: str,
        primary_id: int,
        secondary_id: int,
        field_resolution: Mapping[str, str] | None = None,
        *,
        merge_emails: bool = True,
        merge_phones: bool = True,
        merge_tags: bool = True,
    ) -> MergeResult:
        """Merge ``secondary_id`` into ``primary_id``.

        The primary keeps its identity and gains a version; the secondary is
        soft-deleted with its own audit version and a merge record is
        written. A failure at any step leaves both contacts untouched.
        """

        if primary_id == secondary_id:
            raise InvalidStateError("A contact cannot be merged with itself")
        resolution = normalize_resolution(field_resolution)

        async with transaction(self.session):
            primary, secondary = await self._lock_pair(owner_id, primary_id, secondary_id)
            result = await self._merge_locked(
                owner_id,
                primary,
                secondary,
                resolution,
                include_emails=merge_emails,
                include_phones=merge_phones,
                include_tags=merge_tags,
            )

        logger.info(
            "Contacts merged",
            extra={
                "owner_id": owner_id,
                "primary_contact_id": primary_id,
                "secondary_contact_id": secondary_id,
                "emails_merged": result.emails_merged,
                "phones_merged": result.phones_merged,
                "tags_merged": result.tags_merged,
            },
        )
        return result

    async def _lock_pair(
        self, owner_id: str, primary_id: int, secondary_id: int
    ) -> tuple[Contact, Contact]:
        contacts = self.contact_service.contacts
        locked: dict[int, Contact | None] = {}
        for contact_id in sorted((primary_id, secondary_id)):
            locked[contact_id] = await contacts.get_for_owner(owner_id, contact_id, lock=True)

        primary, secondary = locked[primary_id], locked[secondary_id]
        if primary is None or secondary is None:
            raise NotFoundError(CONTACT_NOT_FOUND)
        if primary.is_deleted or secondary.is_deleted:
            raise InvalidStateError("Deleted contacts cannot be merged")
        return primary, secondary

    async def _merge_locked(
        self,
        owner_id: str,
        primary: Contact,
        secondary: Contact,
        resolution: dict[str, str],
        *,
        include_emails: bool,
        include_phones: bool,
        include_tags: bool,
    ) -> MergeResult:
        contacts = self.contact_service.contacts
        previous = snapshot_of(primary)

        from_primary: list[str] = []
        from_secondary: list[str] = []
        values: dict[str, Any] = {}
        for field_name in MERGEABLE_FIELDS:
            value, sides = resolve_field(
                getattr(primary, field_name),
                getattr(secondary, field_name),
                resolution.get(field_name, "primary"),
            )
            values[field_name] = value
            if "primary" in sides:
                from_primary.append(field_name)
            if "secondary" in sides:
                from_secondary.append(field_name)

        emails, emails_merged = combine_emails(primary.emails, secondary.emails, include_emails)
        phones, phones_merged = combine_phones(primary.phones, secondary.phones, include_phones)
        tag_names, tags_merged = combine_tag_names(
            [tag.name for tag in primary.tags],
            [tag.name for tag in secondary.tags],
            include_tags,
        )
        tags = await self.contact_service.tags.find_or_create_tags(owner_id, tag_names)

        contacts.replace_emails(primary, prepare_emails(emails))
        contacts.replace_phones(primary, prepare_phones(phones))
        primary.tags = tags
        for field_name, value in values.items():
            setattr(primary, field_name, value)
        await self.session.flush()
        await self.contact_service.versions.append_version(
            primary.id, previous, snapshot_of(primary)
        )

        secondary_name = secondary.full_name
        await self.contact_service.mark_deleted(secondary)

        await self.merges.add(
            ContactMergeRecord(
                owner_id=owner_id,
                primary_contact_id=primary.id,
                primary_contact_name=primary.full_name,
                secondary_contact_id=secondary.id,
                secondary_contact_name=secondary_name,
                emails_merged=emails_merged,
                phones_merged=phones_merged,
                tags_merged=tags_merged,
            )
        )

        return MergeResult(
            merged_contact_id=primary.id,
            deleted_contact_id=secondary.id,
            fields_from_primary=from_primary,
            fields_from_secondary=from_secondary,
            emails_merged=emails_merged,
            phones_merged=phones_merged,
            tags_merged=tags_merged,
        )
