"""Pydantic schemas for contact merging."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

FieldSource = Literal["primary", "secondary", "merge"]


class MergeRequest(BaseModel):
    secondary_id: int = Field(gt=0)
    field_resolution: dict[str, FieldSource] = Field(default_factory=dict)
    merge_emails: bool = True
    merge_phones: bool = True
    merge_tags: bool = True


class MergeResult(BaseModel):
    merged_contact_id: int
    deleted_contact_id: int
    fields_from_primary: list[str] = Field(default_factory=list)
    fields_from_secondary: list[str] = Field(default_factory=list)
    emails_merged: int = 0
    phones_merged: int = 0
    tags_merged: int = 0
