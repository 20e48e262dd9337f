"""Pydantic schemas for contact resources."""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


TagName = Annotated[str, Field(min_length=1, max_length=60)]
PhoneNumber = Annotated[
    str, Field(min_length=7, max_length=32, pattern=r"^[+0-9().\- ]+$")
]
PersonName = Annotated[str, Field(min_length=1, max_length=120)]
Label = Annotated[str, Field(min_length=1, max_length=40)]

SortField = Literal["first_name", "last_name", "company", "created_at", "updated_at"]
SortOrder = Literal["asc", "desc"]


class EmailEntry(BaseModel):
    address: EmailStr
    label: Label = "other"
    is_primary: bool | None = None


class PhoneEntry(BaseModel):
    number: PhoneNumber
    label: Label = "other"
    is_primary: bool | None = None


def _clean_tags(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    unique_tags: list[str] = []
    seen: set[str] = set()
    for tag in value:
        cleaned = tag.strip()
        if not cleaned:
            msg = "Tags must not be empty"
            raise ValueError(msg)
        if cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            unique_tags.append(cleaned)
    return unique_tags


def _clean_name(value: str | None) -> str:
    if value is None or not value.strip():
        msg = "Name fields must not be empty"
        raise ValueError(msg)
    return value.strip()


class ContactBase(BaseModel):
    company: str | None = Field(default=None, max_length=200)
    title: str | None = Field(default=None, max_length=200)
    birthday: date | None = None
    linkedin_url: str | None = Field(default=None, max_length=500)
    notes: str | None = None


class ContactCreate(ContactBase):
    first_name: PersonName
    last_name: PersonName
    emails: list[EmailEntry] = Field(default_factory=list)
    phones: list[PhoneEntry] = Field(default_factory=list)
    tags: list[TagName] = Field(default_factory=list, max_length=50)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: list[str]) -> list[str]:
        return _clean_tags(value) or []


class ContactUpdate(ContactBase):
    """Partial update; only fields that were explicitly set are applied."""

    first_name: PersonName | None = None
    last_name: PersonName | None = None
    emails: list[EmailEntry] | None = None
    phones: list[PhoneEntry] | None = None
    tags: list[TagName] | None = Field(default=None, max_length=50)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_optional_names(cls, value: str | None) -> str:
        return _clean_name(value)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return _clean_tags(value)


class EmailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    address: str
    label: str
    is_primary: bool


class PhoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: str
    label: str
    is_primary: bool


class ContactRead(ContactBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    emails: list[EmailRead] = Field(default_factory=list)
    phones: list[PhoneRead] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def tag_names(cls, value: Any) -> list[str]:
        if not value:
            return []
        return [getattr(tag, "name", tag) for tag in value]


class ContactPage(BaseModel):
    contacts: list[ContactRead]
    total: int
    skip: int
    take: int
