"""Pydantic schemas for tag resources."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TagRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime
