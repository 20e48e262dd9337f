"""Owner-scoped tag lookups."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.models import Tag, contact_tags
from rolodex.repositories.base import BaseRepository


class TagRepository(BaseRepository[Tag]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Tag, session)

    async def find_by_names(self, owner_id: str, names: Sequence[str]) -> list[Tag]:
        """Tags whose names match any of ``names`` case-insensitively.

        SQLite's ``lower()`` only folds ASCII, so names are compared with
        ``str.casefold`` after loading the owner's tags.
        """

        if not names:
            return []
        wanted = {name.casefold() for name in names}
        tags = await self.list_for_owner(owner_id)
        return [tag for tag in tags if tag.name.casefold() in wanted]

    async def create(self, owner_id: str, name: str) -> Tag:
        return await self.add(Tag(owner_id=owner_id, name=name))

    async def list_for_owner(self, owner_id: str, *, search: str | None = None) -> list[Tag]:
        result = await self.session.execute(
            select(Tag).where(Tag.owner_id == owner_id).order_by(Tag.name)
        )
        tags = list(result.scalars().all())
        needle = (search or "").strip().casefold()
        if needle:
            tags = [tag for tag in tags if needle in tag.name.casefold()]
        return tags

    async def delete_orphans(self, owner_id: str) -> int:
        """Delete the owner's tags that no contact references any more."""

        in_use = select(contact_tags.c.tag_id)
        result = await self.session.execute(
            delete(Tag)
            .where(Tag.owner_id == owner_id, Tag.id.not_in(in_use))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
