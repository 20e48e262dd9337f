from __future__ import annotations

import pytest
from sqlalchemy import func, select

from rolodex.core.errors import InvalidStateError, NotFoundError, ValidationError
from rolodex.models import ContactMergeRecord
from rolodex.repositories.activity import MergeRecordRepository
from rolodex.schemas import ContactCreate
from rolodex.services.contacts import ContactService
from rolodex.services.merging import (NOTES_SEPARATOR, MergeEngine, normalize_resolution,
                                      resolve_field)

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"


class ExplodingMergeRecords(MergeRecordRepository):
    async def add(self, instance):
        raise RuntimeError("merge record store unavailable")


def test_resolve_field_defaults_and_overrides() -> None:
    assert resolve_field("Acme", "Beta") == ("Acme", {"primary"})
    assert resolve_field(None, "Beta") == ("Beta", {"secondary"})
    assert resolve_field("  ", "Beta") == ("Beta", {"secondary"})
    assert resolve_field("Acme", "Beta", "secondary") == ("Beta", {"secondary"})
    assert resolve_field("Acme", None, "secondary") == ("Acme", {"primary"})
    assert resolve_field("one", "two", "merge") == (
        f"one{NOTES_SEPARATOR}two",
        {"primary", "secondary"},
    )
    assert resolve_field(None, "two", "merge") == ("two", {"secondary"})


def test_normalize_resolution_expands_name_and_rejects_bad_input() -> None:
    assert normalize_resolution({"name": "secondary", "notes": "merge"}) == {
        "first_name": "secondary",
        "last_name": "secondary",
        "notes": "merge",
    }
    with pytest.raises(ValidationError):
        normalize_resolution({"favourite_color": "primary"})
    with pytest.raises(ValidationError):
        normalize_resolution({"company": "merge"})


async def _create(service: ContactService, owner_id: str = OWNER_ID, **fields):
    return await service.create_contact(owner_id, ContactCreate(**fields))


@pytest.mark.anyio("asyncio")
async def test_merge_combines_collections_and_fields(session) -> None:
    service = ContactService(session)
    primary = await _create(
        service,
        first_name="Ann",
        last_name="Lee",
        company=None,
        notes="Primary notes",
        emails=[{"address": "ann@x.com", "label": "work"}],
        phones=[{"number": "+1 555 010 2030"}],
        tags=["VIP"],
    )
    secondary = await _create(
        service,
        first_name="Annie",
        last_name="Lee",
        company="Acme",
        notes="Secondary notes",
        emails=[{"address": "ANN@x.com"}, {"address": "ann.lee@y.com"}],
        phones=[{"number": "555-010-2030"}, {"number": "555-999-0000"}],
        tags=["vip", "golf"],
    )
    primary_id, secondary_id = primary.id, secondary.id

    result = await MergeEngine(session).merge(
        OWNER_ID, primary_id, secondary_id, {"notes": "merge"}
    )

    assert result.merged_contact_id == primary_id
    assert result.deleted_contact_id == secondary_id
    assert (result.emails_merged, result.phones_merged, result.tags_merged) == (1, 1, 1)
    assert "company" in result.fields_from_secondary
    assert "first_name" in result.fields_from_primary
    assert "notes" in result.fields_from_primary and "notes" in result.fields_from_secondary

    merged = await service.get_contact(OWNER_ID, primary_id)
    assert merged.company == "Acme"
    assert merged.notes == f"Primary notes{NOTES_SEPARATOR}Secondary notes"
    assert [(email.address, email.is_primary) for email in merged.emails] == [
        ("ann@x.com", True),
        ("ann.lee@y.com", False),
    ]
    assert [phone.number for phone in merged.phones] == ["+1 555 010 2030", "555-999-0000"]
    assert sorted(tag.name for tag in merged.tags) == ["VIP", "golf"]

    with pytest.raises(NotFoundError):
        await service.get_contact(OWNER_ID, secondary_id)
    secondary_versions = await service.get_versions(OWNER_ID, secondary_id)
    assert secondary_versions[0].changes == {"is_deleted": {"from": False, "to": True}}
    primary_versions = await service.get_versions(OWNER_ID, primary_id)
    assert [version.version for version in primary_versions] == [2, 1]


@pytest.mark.anyio("asyncio")
async def test_merging_identical_emails_leaves_list_unchanged(session) -> None:
    service = ContactService(session)
    primary = await _create(
        service, first_name="Ann", last_name="Lee", emails=[{"address": "x@y.com"}]
    )
    secondary = await _create(
        service, first_name="Ann", last_name="Lee", emails=[{"address": "X@Y.COM"}]
    )
    primary_id = primary.id

    result = await MergeEngine(session).merge(OWNER_ID, primary_id, secondary.id)

    assert result.emails_merged == 0
    merged = await service.get_contact(OWNER_ID, primary_id)
    assert [email.address for email in merged.emails] == ["x@y.com"]
    versions = await service.get_versions(OWNER_ID, primary_id)
    assert [version.version for version in versions] == [1]


@pytest.mark.anyio("asyncio")
async def test_merge_preconditions(session) -> None:
    service = ContactService(session)
    first = await _create(service, first_name="Ann", last_name="Lee")
    second = await _create(service, first_name="Bo", last_name="Lee")
    foreign = await _create(service, OTHER_OWNER_ID, first_name="Cy", last_name="Lee")
    first_id, second_id, foreign_id = first.id, second.id, foreign.id
    engine = MergeEngine(session)

    with pytest.raises(InvalidStateError):
        await engine.merge(OWNER_ID, first_id, first_id)
    with pytest.raises(NotFoundError):
        await engine.merge(OWNER_ID, first_id, foreign_id)

    await service.delete_contact(OWNER_ID, second_id)
    with pytest.raises(InvalidStateError):
        await engine.merge(OWNER_ID, first_id, second_id)


@pytest.mark.anyio("asyncio")
async def test_failed_merge_rolls_everything_back(session) -> None:
    service = ContactService(session)
    primary = await _create(
        service, first_name="Ann", last_name="Lee", emails=[{"address": "ann@x.com"}]
    )
    secondary = await _create(
        service,
        first_name="Ann",
        last_name="Lee",
        company="Acme",
        emails=[{"address": "other@x.com"}],
        tags=["golf"],
    )
    primary_id, secondary_id = primary.id, secondary.id
    engine = MergeEngine(session, merges=ExplodingMergeRecords(session))

    with pytest.raises(RuntimeError):
        await engine.merge(OWNER_ID, primary_id, secondary_id)

    restored_primary = await service.get_contact(OWNER_ID, primary_id)
    assert restored_primary.company is None
    assert [email.address for email in restored_primary.emails] == ["ann@x.com"]
    assert restored_primary.tags == []
    assert (await service.get_contact(OWNER_ID, secondary_id)).is_deleted is False
    assert len(await service.get_versions(OWNER_ID, primary_id)) == 1
    assert len(await service.get_versions(OWNER_ID, secondary_id)) == 1
    assert await session.scalar(select(func.count()).select_from(ContactMergeRecord)) == 0
