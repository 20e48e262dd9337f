"""Activity feed API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from rolodex.api.v1.common import OwnerId, data_response, get_activity_aggregator
from rolodex.core.config import get_settings
from rolodex.schemas import ActivityFeedResponse, HiddenContactRead
from rolodex.services.activity import ActivityAggregator


router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("")
async def get_recent_activity(
    owner_id: OwnerId,
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    aggregator: ActivityAggregator = Depends(get_activity_aggregator),
) -> dict[str, ActivityFeedResponse]:
    """Recent contact edits, merges and task events, newest first."""

    limit = min(limit, get_settings().activity_max_limit)
    feed = await aggregator.get_recent_activity(owner_id, limit=limit, offset=offset)
    return data_response(feed)


@router.get("/hidden")
async def list_hidden_contacts(
    owner_id: OwnerId,
    aggregator: ActivityAggregator = Depends(get_activity_aggregator),
) -> dict[str, list[HiddenContactRead]]:
    return data_response(await aggregator.list_hidden_contacts(owner_id))


@router.put("/hidden/{contact_id}")
async def hide_contact_from_feed(
    contact_id: int,
    owner_id: OwnerId,
    aggregator: ActivityAggregator = Depends(get_activity_aggregator),
) -> dict[str, dict[str, bool]]:
    """Stop showing a contact's events in the feed."""

    await aggregator.hide_contact_from_feed(owner_id, contact_id)
    return data_response({"hidden": True})


@router.delete("/hidden/{contact_id}")
async def unhide_contact_from_feed(
    contact_id: int,
    owner_id: OwnerId,
    aggregator: ActivityAggregator = Depends(get_activity_aggregator),
) -> dict[str, dict[str, bool]]:
    await aggregator.unhide_contact_from_feed(owner_id, contact_id)
    return data_response({"hidden": False})
