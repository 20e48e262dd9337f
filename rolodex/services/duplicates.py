"""Duplicate contact detection."""
from __future__ import annotations

import re

from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.errors import CONTACT_NOT_FOUND, NotFoundError
from rolodex.models import Contact
from rolodex.repositories.contacts import ContactRepository
from rolodex.schemas.contact import ContactCreate

NON_DIGITS = re.compile(r"\D")


def normalize_email(address: str) -> str:
    return address.strip().lower()


def normalize_phone(number: str) -> str:
    """Digits only, keeping the last ten so country prefixes do not matter."""

    return NON_DIGITS.sub("", number)[-10:]


class DuplicateDetector:
    def __init__(
        self, session: AsyncSession, *, contacts: ContactRepository | None = None
    ) -> None:
        self.contacts = contacts or ContactRepository(session)

    async def find_potential_duplicates(self, owner_id: str, contact_id: int) -> list[Contact]:
        """Other active contacts sharing an email or a (possibly swapped) name."""

        contact = await self.contacts.get_for_owner(owner_id, contact_id)
        if contact is None or contact.is_deleted:
            raise NotFoundError(CONTACT_NOT_FOUND)

        matches: dict[int, Contact] = {}
        for email in contact.emails:
            for other in await self.contacts.find_by_email(
                owner_id, email.address, exclude_id=contact.id
            ):
                matches.setdefault(other.id, other)

        for other in await self.contacts.find_by_name(
            owner_id,
            contact.first_name,
            contact.last_name,
            include_swapped=True,
            exclude_id=contact.id,
        ):
            matches.setdefault(other.id, other)

        return list(matches.values())

    async def find_duplicate(self, owner_id: str, candidate: ContactCreate) -> Contact | None:
        """The existing contact an incoming record most likely duplicates.

        Any shared email wins. Otherwise a contact with the exact same name
        must also share a phone number.
        """

        for email in candidate.emails:
            found = await self.contacts.find_by_email(owner_id, email.address)
            if found:
                return found[0]

        candidate_phones = {normalize_phone(phone.number) for phone in candidate.phones}
        candidate_phones.discard("")
        if not candidate_phones:
            return None

        for existing in await self.contacts.find_by_name(
            owner_id, candidate.first_name, candidate.last_name
        ):
            existing_phones = {normalize_phone(phone.number) for phone in existing.phones}
            if candidate_phones & existing_phones:
                return existing
        return None
