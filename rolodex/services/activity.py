"""Owner activity feed built from contact versions, merges and tasks."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.db import transaction
from rolodex.core.errors import CONTACT_NOT_FOUND, NotFoundError, ValidationError
from rolodex.models import HiddenFeedContact, Task, TaskStatus
from rolodex.repositories.activity import (HiddenFeedRepository, MergeRecordRepository,
                                           TaskRepository)
from rolodex.repositories.contacts import ContactRepository
from rolodex.repositories.versions import VersionRepository
from rolodex.schemas.activity import (ActivityContactInfo, ActivityFeedItem,
                                      ActivityFeedResponse, ActivityGroupInfo,
                                      ActivityMergeInfo, ActivityTaskInfo, ActivityType,
                                      HiddenContactRead)
from rolodex.schemas.version import FieldChange

logger = logging.getLogger(__name__)

EDIT_GROUP_WINDOW = timedelta(hours=24)
OVERFETCH_PADDING = 10


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sort_activities(items: Iterable[ActivityFeedItem]) -> list[ActivityFeedItem]:
    """Newest first, ties broken by item id so the order is stable."""

    return sorted(items, key=lambda item: (as_utc(item.timestamp), item.id), reverse=True)


def group_activities(
    items: Sequence[ActivityFeedItem], window: timedelta = EDIT_GROUP_WINDOW
) -> list[ActivityFeedItem]:
    """Collapse runs of edits to the same contact into one group item.

    ``items`` must already be sorted newest first. An edit joins the open
    run when it is for the same contact and falls within ``window`` of the
    run's first (newest) item. Any other item closes the run.
    """

    grouped: list[ActivityFeedItem] = []
    run: list[ActivityFeedItem] = []

    for item in items:
        if run and _extends_run(run, item, window):
            run.append(item)
            continue

        if run:
            grouped.append(_close_run(run))
            run = []
        if item.type is ActivityType.CONTACT_EDITED and item.contact is not None:
            run = [item]
        else:
            grouped.append(item)

    if run:
        grouped.append(_close_run(run))
    return grouped


def _extends_run(
    run: list[ActivityFeedItem], item: ActivityFeedItem, window: timedelta
) -> bool:
    anchor = run[0]
    if item.type is not ActivityType.CONTACT_EDITED or item.contact is None:
        return False
    if anchor.contact is None or item.contact.id != anchor.contact.id:
        return False
    return as_utc(anchor.timestamp) - as_utc(item.timestamp) <= window


def _close_run(run: list[ActivityFeedItem]) -> ActivityFeedItem:
    if len(run) == 1:
        return run[0]

    anchor = run[0]
    contact = anchor.contact
    assert contact is not None
    return ActivityFeedItem(
        id=f"contact-edit-group-{anchor.id}",
        type=ActivityType.CONTACT_EDITED_GROUP,
        timestamp=anchor.timestamp,
        contact=ActivityContactInfo(id=contact.id, name=contact.name),
        group=ActivityGroupInfo(
            contact_id=contact.id,
            name=contact.name,
            edit_count=len(run),
            members=list(run),
            latest_timestamp=anchor.timestamp,
            earliest_timestamp=run[-1].timestamp,
        ),
    )


def _task_info(task: Task, previous_status: str | None = None) -> ActivityTaskInfo:
    status = task.status.value if isinstance(task.status, TaskStatus) else str(task.status)
    return ActivityTaskInfo(
        id=task.id,
        title=task.title,
        category=task.category,
        status=status,
        previous_status=previous_status,
        due_date=task.due_date,
    )


class ActivityAggregator:
    """Read side of the owner's timeline, plus the per-contact hide switch."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        contacts: ContactRepository | None = None,
        versions: VersionRepository | None = None,
        merges: MergeRecordRepository | None = None,
        tasks: TaskRepository | None = None,
        hidden: HiddenFeedRepository | None = None,
    ) -> None:
        self.session = session
        self.contacts = contacts or ContactRepository(session)
        self.versions = versions or VersionRepository(session)
        self.merges = merges or MergeRecordRepository(session)
        self.tasks = tasks or TaskRepository(session)
        self.hidden = hidden or HiddenFeedRepository(session)

    async def get_recent_activity(
        self, owner_id: str, limit: int = 20, offset: int = 0
    ) -> ActivityFeedResponse:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if offset < 0:
            raise ValidationError("offset must not be negative")

        hidden_ids = await self.hidden.hidden_contact_ids(owner_id)
        fetch = 2 * (offset + limit + OVERFETCH_PADDING)

        items: list[ActivityFeedItem] = []
        items.extend(await self._contact_edits(owner_id, hidden_ids, fetch))
        items.extend(await self._merge_events(owner_id, hidden_ids, fetch))
        items.extend(await self._task_events(owner_id, fetch))

        grouped = group_activities(sort_activities(items))
        end = offset + limit
        return ActivityFeedResponse(activities=grouped[offset:end], has_more=len(grouped) > end)

    async def hide_contact_from_feed(self, owner_id: str, contact_id: int) -> None:
        async with transaction(self.session):
            await self._require_contact(owner_id, contact_id)
            if await self.hidden.find(owner_id, contact_id) is None:
                await self.hidden.add(HiddenFeedContact(owner_id=owner_id, contact_id=contact_id))
        logger.info("Contact hidden from feed", extra={"owner_id": owner_id, "contact_id": contact_id})

    async def unhide_contact_from_feed(self, owner_id: str, contact_id: int) -> None:
        async with transaction(self.session):
            await self._require_contact(owner_id, contact_id)
            existing = await self.hidden.find(owner_id, contact_id)
            if existing is not None:
                await self.hidden.delete(existing)
        logger.info("Contact shown in feed", extra={"owner_id": owner_id, "contact_id": contact_id})

    async def list_hidden_contacts(self, owner_id: str) -> list[HiddenContactRead]:
        rows = await self.hidden.list_with_contacts(owner_id)
        return [
            HiddenContactRead(
                contact_id=contact.id, name=contact.full_name, hidden_at=as_utc(hidden.created_at)
            )
            for hidden, contact in rows
        ]

    async def _require_contact(self, owner_id: str, contact_id: int) -> None:
        if await self.contacts.get_for_owner(owner_id, contact_id) is None:
            raise NotFoundError(CONTACT_NOT_FOUND)

    async def _contact_edits(
        self, owner_id: str, hidden_ids: set[int], limit: int
    ) -> list[ActivityFeedItem]:
        rows = await self.versions.recent_edits(
            owner_id, exclude_contact_ids=hidden_ids, limit=limit
        )
        return [
            ActivityFeedItem(
                id=f"contact-edit-{version.id}",
                type=ActivityType.CONTACT_EDITED,
                timestamp=as_utc(version.created_at),
                contact=ActivityContactInfo(
                    id=contact.id,
                    name=contact.full_name,
                    changes={
                        name: FieldChange.model_validate(change)
                        for name, change in (version.changes or {}).items()
                    },
                    version=version.version,
                ),
            )
            for version, contact in rows
        ]

    async def _merge_events(
        self, owner_id: str, hidden_ids: set[int], limit: int
    ) -> list[ActivityFeedItem]:
        records = await self.merges.recent(owner_id, exclude_contact_ids=hidden_ids, limit=limit)
        return [
            ActivityFeedItem(
                id=f"contact-merge-{record.id}",
                type=ActivityType.CONTACT_MERGED,
                timestamp=as_utc(record.created_at),
                contact=ActivityContactInfo(
                    id=record.primary_contact_id, name=record.primary_contact_name
                ),
                merge=ActivityMergeInfo(
                    secondary_contact_name=record.secondary_contact_name,
                    emails_merged=record.emails_merged,
                    phones_merged=record.phones_merged,
                    tags_merged=record.tags_merged,
                ),
            )
            for record in records
        ]

    async def _task_events(self, owner_id: str, limit: int) -> list[ActivityFeedItem]:
        items = [
            ActivityFeedItem(
                id=f"task-created-{task.id}",
                type=ActivityType.TASK_CREATED,
                timestamp=as_utc(task.created_at),
                task=_task_info(task),
            )
            for task in await self.tasks.recently_created(owner_id, limit=limit)
        ]
        items.extend(
            ActivityFeedItem(
                id=f"task-completed-{task.id}",
                type=ActivityType.TASK_COMPLETED,
                timestamp=as_utc(task.completed_at),
                task=_task_info(task, previous_status=TaskStatus.INCOMPLETE.value),
            )
            for task in await self.tasks.recently_completed(owner_id, limit=limit)
            if task.completed_at is not None
        )
        return items
