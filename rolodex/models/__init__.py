"""Database models package for the Rolodex contact core."""

from .base import Base
from .contact import Contact, ContactEmail, ContactPhone
from .feed import HiddenFeedContact
from .merge import ContactMergeRecord
from .tag import Tag, contact_tags
from .task import Task, TaskStatus
from .version import ContactVersion

__all__ = [
    "Base",
    "Contact",
    "ContactEmail",
    "ContactMergeRecord",
    "ContactPhone",
    "ContactVersion",
    "HiddenFeedContact",
    "Tag",
    "Task",
    "TaskStatus",
    "contact_tags",
]
