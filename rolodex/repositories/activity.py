"""Sources of activity feed events and feed preferences."""
from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.models import Contact, ContactMergeRecord, HiddenFeedContact, Task
from rolodex.repositories.base import BaseRepository


class HiddenFeedRepository(BaseRepository[HiddenFeedContact]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(HiddenFeedContact, session)

    async def hidden_contact_ids(self, owner_id: str) -> set[int]:
        result = await self.session.execute(
            select(HiddenFeedContact.contact_id).where(HiddenFeedContact.owner_id == owner_id)
        )
        return set(result.scalars().all())

    async def find(self, owner_id: str, contact_id: int) -> HiddenFeedContact | None:
        result = await self.session.execute(
            select(HiddenFeedContact).where(
                HiddenFeedContact.owner_id == owner_id,
                HiddenFeedContact.contact_id == contact_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_with_contacts(
        self, owner_id: str
    ) -> list[tuple[HiddenFeedContact, Contact]]:
        result = await self.session.execute(
            select(HiddenFeedContact, Contact)
            .join(Contact, Contact.id == HiddenFeedContact.contact_id)
            .where(HiddenFeedContact.owner_id == owner_id)
            .order_by(HiddenFeedContact.created_at.desc(), HiddenFeedContact.id.desc())
        )
        return [(hidden, contact) for hidden, contact in result.all()]


class MergeRecordRepository(BaseRepository[ContactMergeRecord]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(ContactMergeRecord, session)

    async def recent(
        self, owner_id: str, *, exclude_contact_ids: set[int], limit: int
    ) -> list[ContactMergeRecord]:
        stmt = (
            select(ContactMergeRecord)
            .where(ContactMergeRecord.owner_id == owner_id)
            .order_by(ContactMergeRecord.created_at.desc(), ContactMergeRecord.id.desc())
            .limit(limit)
        )
        if exclude_contact_ids:
            ids = list(exclude_contact_ids)
            stmt = stmt.where(
                ContactMergeRecord.primary_contact_id.not_in(ids),
                or_(
                    ContactMergeRecord.secondary_contact_id.is_(None),
                    ContactMergeRecord.secondary_contact_id.not_in(ids),
                ),
            )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class TaskRepository(BaseRepository[Task]):
    """Read-only view of the task scheduler's tasks."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Task, session)

    async def recently_created(self, owner_id: str, *, limit: int) -> list[Task]:
        result = await self.session.execute(
            select(Task)
            .where(Task.owner_id == owner_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def recently_completed(self, owner_id: str, *, limit: int) -> list[Task]:
        result = await self.session.execute(
            select(Task)
            .where(Task.owner_id == owner_id, Task.completed_at.is_not(None))
            .order_by(Task.completed_at.desc(), Task.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
