"""Pydantic schemas for the activity feed."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from rolodex.schemas.version import FieldChange


class ActivityType(str, Enum):
    """Kinds of entries the activity feed can contain."""

    CONTACT_EDITED = "contact_edited"
    CONTACT_EDITED_GROUP = "contact_edited_group"
    CONTACT_MERGED = "contact_merged"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"


class ActivityContactInfo(BaseModel):
    id: int
    name: str
    changes: dict[str, FieldChange] | None = None
    version: int | None = None


class ActivityTaskInfo(BaseModel):
    id: int
    title: str
    category: str
    status: str
    previous_status: str | None = None
    due_date: datetime | None = None


class ActivityMergeInfo(BaseModel):
    secondary_contact_name: str
    emails_merged: int = 0
    phones_merged: int = 0
    tags_merged: int = 0


class ActivityGroupInfo(BaseModel):
    contact_id: int
    name: str
    edit_count: int
    members: list[ActivityFeedItem] = Field(default_factory=list)
    latest_timestamp: datetime
    earliest_timestamp: datetime


class ActivityFeedItem(BaseModel):
    id: str
    type: ActivityType
    timestamp: datetime
    contact: ActivityContactInfo | None = None
    task: ActivityTaskInfo | None = None
    merge: ActivityMergeInfo | None = None
    group: ActivityGroupInfo | None = None


ActivityGroupInfo.model_rebuild()
ActivityFeedItem.model_rebuild()


class ActivityFeedResponse(BaseModel):
    activities: list[ActivityFeedItem]
    has_more: bool


class HiddenContactRead(BaseModel):
    contact_id: int
    name: str
    hidden_at: datetime
