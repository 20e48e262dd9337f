"""Common helpers for API responses and request dependencies."""
from __future__ import annotations

from typing import Annotated, TypeVar

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.db import get_session
from rolodex.services.activity import ActivityAggregator
from rolodex.services.contacts import ContactService
from rolodex.services.duplicates import DuplicateDetector
from rolodex.services.merging import MergeEngine
from rolodex.services.tags import TagService


T = TypeVar("T")


def data_response(payload: T) -> dict[str, T]:
    """Wrap a payload in the standard data envelope."""

    return {"data": payload}


async def get_owner_id(
    owner_id: Annotated[str, Header(alias="X-Owner-Id", min_length=1, max_length=64)],
) -> str:
    """Owner id placed on the request by the authentication layer."""

    return owner_id.strip()


def get_contact_service(session: AsyncSession = Depends(get_session)) -> ContactService:
    return ContactService(session)


def get_duplicate_detector(session: AsyncSession = Depends(get_session)) -> DuplicateDetector:
    return DuplicateDetector(session)


def get_merge_engine(session: AsyncSession = Depends(get_session)) -> MergeEngine:
    return MergeEngine(session)


def get_activity_aggregator(session: AsyncSession = Depends(get_session)) -> ActivityAggregator:
    return ActivityAggregator(session)


def get_tag_service(session: AsyncSession = Depends(get_session)) -> TagService:
    return TagService(session)


OwnerId = Annotated[str, Depends(get_owner_id)]
