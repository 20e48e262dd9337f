"""Owner-scoped tag resolution and housekeeping."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.db import transaction
from rolodex.models import Tag
from rolodex.repositories.tags import TagRepository

logger = logging.getLogger(__name__)


def unique_tag_names(names: Iterable[str]) -> list[str]:
    """Strip names and drop blanks and case-insensitive repeats, keeping order."""

    unique: list[str] = []
    seen: set[str] = set()
    for name in names:
        cleaned = name.strip()
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            unique.append(cleaned)
    return unique


class TagService:
    def __init__(self, session: AsyncSession, *, tags: TagRepository | None = None) -> None:
        self.session = session
        self.tags = tags or TagRepository(session)

    async def find_or_create_tags(self, owner_id: str, names: Iterable[str]) -> list[Tag]:
        """Resolve tag names to the owner's tags, creating missing ones.

        Matching is case-insensitive and an existing tag keeps its stored
        spelling. The result follows the order of ``names``. Runs inside the
        caller's transaction.
        """

        wanted = unique_tag_names(names)
        existing = {
            tag.name.casefold(): tag for tag in await self.tags.find_by_names(owner_id, wanted)
        }
        resolved: list[Tag] = []
        for name in wanted:
            tag = existing.get(name.casefold())
            if tag is None:
                tag = await self.tags.create(owner_id, name)
                existing[name.casefold()] = tag
            resolved.append(tag)
        return resolved

    async def list_tags(self, owner_id: str, search: str | None = None) -> list[Tag]:
        return await self.tags.list_for_owner(owner_id, search=search)

    async def cleanup_orphan_tags(self, owner_id: str) -> int:
        async with transaction(self.session):
            removed = await self.tags.delete_orphans(owner_id)
        logger.info("Orphan tags removed", extra={"owner_id": owner_id, "removed": removed})
        return removed
