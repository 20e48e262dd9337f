"""Contacts API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr

from rolodex.api.v1.common import (OwnerId, data_response, get_contact_service,
                                   get_duplicate_detector, get_merge_engine)
from rolodex.core.config import get_settings
from rolodex.schemas import (ContactCreate, ContactPage, ContactRead, ContactUpdate,
                             ContactVersionRead, MergeRequest, MergeResult, NoteUpdate)
from rolodex.schemas.contact import SortField, SortOrder
from rolodex.services.contacts import ContactService
from rolodex.services.duplicates import DuplicateDetector
from rolodex.services.merging import MergeEngine


router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contact(
    payload: ContactCreate,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactRead]:
    """Create a new contact and record its first version."""

    contact = await service.create_contact(owner_id, payload)
    return data_response(ContactRead.model_validate(contact))


@router.get("")
async def list_contacts(
    owner_id: OwnerId,
    search: str | None = None,
    sort_by: SortField = "last_name",
    sort_order: SortOrder = "asc",
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1),
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactPage]:
    """List contacts with optional search, sorting and pagination."""

    take = min(take, get_settings().contact_page_max)
    contacts, total = await service.list_contacts(
        owner_id, search=search, sort_by=sort_by, sort_order=sort_order, skip=skip, take=take
    )
    page = ContactPage(
        contacts=[ContactRead.model_validate(contact) for contact in contacts],
        total=total,
        skip=skip,
        take=take,
    )
    return data_response(page)


@router.get("/lookup")
async def find_by_email_address(
    owner_id: OwnerId,
    email: EmailStr,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactRead | None]:
    """Return the contact holding ``email``, or null when nobody does."""

    contact = await service.find_by_email_address(owner_id, email)
    return data_response(ContactRead.model_validate(contact) if contact else None)


@router.get("/{contact_id}")
async def retrieve_contact(
    contact_id: int,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactRead]:
    """Retrieve a single contact by identifier."""

    contact = await service.get_contact(owner_id, contact_id)
    return data_response(ContactRead.model_validate(contact))


@router.put("/{contact_id}")
async def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactRead]:
    """Update the provided contact."""

    contact = await service.update_contact(owner_id, contact_id, payload)
    return data_response(ContactRead.model_validate(contact))


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: int,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, dict[str, bool]]:
    """Soft-delete the specified contact."""

    await service.delete_contact(owner_id, contact_id)
    return data_response({"deleted": True})


@router.get("/{contact_id}/versions")
async def list_versions(
    contact_id: int,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, list[ContactVersionRead]]:
    """Version history of a contact, newest first."""

    versions = await service.get_versions(owner_id, contact_id)
    return data_response([ContactVersionRead.model_validate(version) for version in versions])


@router.get("/{contact_id}/versions/{version}")
async def retrieve_version(
    contact_id: int,
    version: int,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactVersionRead]:
    record = await service.get_version(owner_id, contact_id, version)
    return data_response(ContactVersionRead.model_validate(record))


@router.post("/{contact_id}/restore/{version}")
async def restore_version(
    contact_id: int,
    version: int,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactRead]:
    """Restore an earlier version; the restore itself becomes the newest version."""

    contact = await service.restore_version(owner_id, contact_id, version)
    return data_response(ContactRead.model_validate(contact))


@router.post("/{contact_id}/merge")
async def merge_contacts(
    contact_id: int,
    payload: MergeRequest,
    owner_id: OwnerId,
    engine: MergeEngine = Depends(get_merge_engine),
) -> dict[str, MergeResult]:
    """Merge ``secondary_id`` into this contact."""

    result = await engine.merge(
        owner_id,
        contact_id,
        payload.secondary_id,
        payload.field_resolution,
        merge_emails=payload.merge_emails,
        merge_phones=payload.merge_phones,
        merge_tags=payload.merge_tags,
    )
    return data_response(result)


@router.get("/{contact_id}/duplicates")
async def find_potential_duplicates(
    contact_id: int,
    owner_id: OwnerId,
    detector: DuplicateDetector = Depends(get_duplicate_detector),
) -> dict[str, list[ContactRead]]:
    matches = await detector.find_potential_duplicates(owner_id, contact_id)
    return data_response([ContactRead.model_validate(contact) for contact in matches])


@router.post("/{contact_id}/notes")
async def apply_notes_update(
    contact_id: int,
    payload: NoteUpdate,
    owner_id: OwnerId,
    service: ContactService = Depends(get_contact_service),
) -> dict[str, ContactRead]:
    """Write one structured notes entry, as the email analysis writer does."""

    contact = await service.apply_notes_update(owner_id, contact_id, payload)
    return data_response(ContactRead.model_validate(contact))
