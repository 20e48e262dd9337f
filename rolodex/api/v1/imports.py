"""Import endpoints for contact CSV data."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.api.v1.common import OwnerId, data_response
from rolodex.core.db import get_session
from rolodex.services.contact_importer import ContactImportProcessor


router = APIRouter(prefix="/import", tags=["import"])


@router.post("/contacts")
async def import_contacts(
    owner_id: OwnerId,
    file: UploadFile = File(...),
    dry_run: str | None = Form(None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Create contacts from a CSV upload, skipping rows that duplicate existing ones.

    With ``dry_run`` nothing is written and the report says what would happen.
    """

    processor = ContactImportProcessor(
        session=session, owner_id=owner_id, dry_run=_parse_bool(dry_run)
    )
    content = await file.read()
    summary = await processor.run(content)

    payload = {
        "dry_run": summary.dry_run,
        "total": summary.total,
        "created": summary.created,
        "skipped": summary.skipped,
        "failed": summary.failed,
        "rows": [
            {
                "row": outcome.row_index,
                "status": outcome.status,
                "message": outcome.message,
                "contact_id": outcome.contact_id,
            }
            for outcome in summary.rows
        ],
    }
    return data_response(payload)


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.lower() in {"1", "true", "yes", "on"}
