from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PodOut(BaseModel):
    id: int
    name: str
    discord_id: Optional[str] = None
    whatsapp_number: Optional[str] = None

    class Config:
        from_attributes = True


class ChannelIdCreate(BaseModel):
    rule_id: int
    channel_id: str = Field(..., min_length=1, max_length=64)
    label: Optional[str] = None


class ChannelIdOut(BaseModel):
    id: int
    rule_id: Optional[int] = None
    label: Optional[str] = None
    channel_id: str
    created_at: datetime

    class Config:
        from_attributes = True
