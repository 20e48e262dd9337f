"""Pydantic schemas for the Rolodex contact core."""

from .activity import (
    ActivityContactInfo,
    ActivityFeedItem,
    ActivityFeedResponse,
    ActivityGroupInfo,
    ActivityMergeInfo,
    ActivityTaskInfo,
    ActivityType,
    HiddenContactRead,
)
from .contact import ContactCreate, ContactPage, ContactRead, ContactUpdate, EmailEntry, PhoneEntry
from .merge import MergeRequest, MergeResult
from .notes import NoteSection, NoteUpdate
from .tag import TagRead
from .version import ContactChanges, ContactSnapshot, ContactVersionRead, FieldChange

__all__ = [
    "ActivityContactInfo",
    "ActivityFeedItem",
    "ActivityFeedResponse",
    "ActivityGroupInfo",
    "ActivityMergeInfo",
    "ActivityTaskInfo",
    "ActivityType",
    "ContactChanges",
    "ContactCreate",
    "ContactPage",
    "ContactRead",
    "ContactSnapshot",
    "ContactUpdate",
    "ContactVersionRead",
    "EmailEntry",
    "FieldChange",
    "HiddenContactRead",
    "MergeRequest",
    "MergeResult",
    "NoteSection",
    "NoteUpdate",
    "PhoneEntry",
    "TagRead",
]
