"""Tag API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from rolodex.api.v1.common import OwnerId, data_response, get_tag_service
from rolodex.schemas import TagRead
from rolodex.services.tags import TagService


router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("")
async def list_tags(
    owner_id: OwnerId,
    search: str | None = None,
    service: TagService = Depends(get_tag_service),
) -> dict[str, list[TagRead]]:
    """Owner's tags ordered by name, optionally filtered for autocomplete."""

    tags = await service.list_tags(owner_id, search)
    return data_response([TagRead.model_validate(tag) for tag in tags])


@router.delete("/orphans")
async def cleanup_orphan_tags(
    owner_id: OwnerId,
    service: TagService = Depends(get_tag_service),
) -> dict[str, dict[str, int]]:
    """Remove tags no contact uses any more."""

    removed = await service.cleanup_orphan_tags(owner_id)
    return data_response({"removed": removed})
