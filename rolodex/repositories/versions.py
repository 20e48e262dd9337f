"""Append-only access to contact versions."""
from __future__ import annotations

from collections.abc import Collection
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.models import Contact, ContactVersion
from rolodex.repositories.base import BaseRepository


class VersionRepository(BaseRepository[ContactVersion]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(ContactVersion, session)

    async def latest_number(self, contact_id: int) -> int:
        """Highest version number recorded for a contact, 0 when none exist."""

        value = await self.session.scalar(
            select(func.max(ContactVersion.version)).where(
                ContactVersion.contact_id == contact_id
            )
        )
        return value or 0

    async def append(
        self,
        contact_id: int,
        number: int,
        snapshot: dict[str, Any],
        changes: dict[str, Any],
    ) -> ContactVersion:
        return await self.add(
            ContactVersion(
                contact_id=contact_id, version=number, snapshot=snapshot, changes=changes
            )
        )

    async def list_for_contact(self, contact_id: int) -> list[ContactVersion]:
        result = await self.session.execute(
            select(ContactVersion)
            .where(ContactVersion.contact_id == contact_id)
            .order_by(ContactVersion.version.desc())
        )
        return list(result.scalars().all())

    async def get_number(self, contact_id: int, number: int) -> ContactVersion | None:
        result = await self.session.execute(
            select(ContactVersion).where(
                ContactVersion.contact_id == contact_id, ContactVersion.version == number
            )
        )
        return result.scalar_one_or_none()

    async def recent_edits(
        self, owner_id: str, *, exclude_contact_ids: Collection[int], limit: int
    ) -> list[tuple[ContactVersion, Contact]]:
        """Newest edits (version 2 and up) of the owner's active contacts."""

        stmt = (
            select(ContactVersion, Contact)
            .join(Contact, Contact.id == ContactVersion.contact_id)
            .where(
                Contact.owner_id == owner_id,
                Contact.is_deleted.is_(False),
                ContactVersion.version > 1,
            )
            .order_by(ContactVersion.created_at.desc(), ContactVersion.id.desc())
            .limit(limit)
        )
        if exclude_contact_ids:
            stmt = stmt.where(ContactVersion.contact_id.not_in(list(exclude_contact_ids)))
        result = await self.session.execute(stmt)
        return [(version, contact) for version, contact in result.all()]
