"""Pydantic schemas for structured notes updates."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class NoteSection(str, Enum):
    """Sections of the structured notes document, in serialization order."""

    RELATIONSHIP_SUMMARY = "relationship_summary"
    WHAT_THEY_CARE_ABOUT = "what_they_care_about"
    KEY_HISTORY = "key_history"
    CURRENT_STATUS = "current_status"
    PREFERENCES = "preferences"


class NoteUpdate(BaseModel):
    """A single change to apply to a contact's notes.

    ``field`` is ignored for ``key_history``; ``date`` is only used there and
    defaults to today.
    """

    section: NoteSection
    field: str = ""
    value: str = Field(min_length=1)
    date: str | None = None
