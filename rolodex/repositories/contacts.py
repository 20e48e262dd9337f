"""Owner-scoped queries over contacts and their email/phone rows."""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.models import Contact, ContactEmail, ContactPhone, Tag
from rolodex.repositories.base import BaseRepository
from rolodex.schemas.version import SnapshotEmail, SnapshotPhone


SORT_COLUMNS = {
    "first_name": Contact.first_name,
    "last_name": Contact.last_name,
    "company": Contact.company,
    "created_at": Contact.created_at,
    "updated_at": Contact.updated_at,
}


class ContactRepository(BaseRepository[Contact]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Contact, session)

    async def get_for_owner(
        self, owner_id: str, contact_id: int, *, lock: bool = False
    ) -> Contact | None:
        """Load a contact if ``owner_id`` owns it, deleted or not.

        ``lock`` takes a row lock for the rest of the transaction where the
        database supports one. The row is always re-read so a lock never
        hands back state cached before it was acquired.
        """

        stmt = (
            select(Contact)
            .where(Contact.id == contact_id, Contact.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        owner_id: str,
        *,
        emails: Iterable[SnapshotEmail] = (),
        phones: Iterable[SnapshotPhone] = (),
        tags: Sequence[Tag] = (),
        **fields: object,
    ) -> Contact:
        contact = Contact(
            owner_id=owner_id,
            emails=[_email_row(entry) for entry in emails],
            phones=[_phone_row(entry) for entry in phones],
            tags=list(tags),
            **fields,
        )
        return await self.add(contact)

    def replace_emails(self, contact: Contact, entries: Iterable[SnapshotEmail]) -> None:
        contact.emails = [_email_row(entry) for entry in entries]

    def replace_phones(self, contact: Contact, entries: Iterable[SnapshotPhone]) -> None:
        contact.phones = [_phone_row(entry) for entry in entries]

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        search: str | None = None,
        sort_by: str = "last_name",
        sort_order: str = "asc",
        skip: int = 0,
        take: int = 50,
    ) -> tuple[list[Contact], int]:
        stmt = self._active(owner_id)
        if search:
            lowered = f"%{escape_like(search.strip().lower())}%"
            email_match = (
                select(ContactEmail.id)
                .where(
                    ContactEmail.contact_id == Contact.id,
                    func.lower(ContactEmail.address).like(lowered, escape="\\"),
                )
                .exists()
            )
            phone_match = (
                select(ContactPhone.id)
                .where(
                    ContactPhone.contact_id == Contact.id,
                    func.lower(ContactPhone.number).like(lowered, escape="\\"),
                )
                .exists()
            )
            stmt = stmt.where(
                or_(
                    func.lower(Contact.first_name).like(lowered, escape="\\"),
                    func.lower(Contact.last_name).like(lowered, escape="\\"),
                    func.lower(Contact.company).like(lowered, escape="\\"),
                    func.lower(Contact.title).like(lowered, escape="\\"),
                    func.lower(Contact.notes).like(lowered, escape="\\"),
                    email_match,
                    phone_match,
                )
            )

        total = await self.session.scalar(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        )

        column = SORT_COLUMNS[sort_by]
        ordering = column.desc() if sort_order == "desc" else column.asc()
        stmt = stmt.order_by(ordering, Contact.id).offset(skip).limit(take)
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total or 0

    async def find_by_email(
        self, owner_id: str, address: str, *, exclude_id: int | None = None
    ) -> list[Contact]:
        """Active contacts holding ``address``, compared case-insensitively."""

        stmt = (
            self._active(owner_id)
            .join(ContactEmail, ContactEmail.contact_id == Contact.id)
            .where(func.lower(ContactEmail.address) == address.strip().lower())
            .order_by(Contact.id)
            .distinct()
        )
        if exclude_id is not None:
            stmt = stmt.where(Contact.id != exclude_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_name(
        self,
        owner_id: str,
        first_name: str,
        last_name: str,
        *,
        include_swapped: bool = False,
        exclude_id: int | None = None,
    ) -> list[Contact]:
        """Active contacts whose names match case-insensitively.

        Names are folded with ``str.casefold`` here rather than in SQL, where
        SQLite's ``lower()`` leaves non-ASCII letters alone.
        """

        wanted = {(first_name.strip().casefold(), last_name.strip().casefold())}
        if include_swapped:
            wanted.add((last_name.strip().casefold(), first_name.strip().casefold()))

        stmt = select(Contact.id, Contact.first_name, Contact.last_name).where(
            Contact.owner_id == owner_id, Contact.is_deleted.is_(False)
        )
        if exclude_id is not None:
            stmt = stmt.where(Contact.id != exclude_id)
        rows = await self.session.execute(stmt)
        ids = [
            contact_id
            for contact_id, first, last in rows.all()
            if (first.strip().casefold(), last.strip().casefold()) in wanted
        ]
        if not ids:
            return []

        result = await self.session.execute(
            self._active(owner_id).where(Contact.id.in_(ids)).order_by(Contact.id)
        )
        return list(result.scalars().all())

    def _active(self, owner_id: str) -> Select[tuple[Contact]]:
        return select(Contact).where(
            Contact.owner_id == owner_id, Contact.is_deleted.is_(False)
        )


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so search text matches literally."""

    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _email_row(entry: SnapshotEmail) -> ContactEmail:
    return ContactEmail(address=entry.address, label=entry.label, is_primary=entry.is_primary)


def _phone_row(entry: SnapshotPhone) -> ContactPhone:
    return ContactPhone(number=entry.number, label=entry.label, is_primary=entry.is_primary)
