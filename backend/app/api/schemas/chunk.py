"""Schemas for chunk payloads and the decomposition trigger."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from app.api.schemas.common import ApiModel


class ChunkPayload(ApiModel):
    id: UUID
    task_id: UUID
    title: str
    duration: int
    tags: Dict[str, Any]
    scheduled_at: Optional[datetime]
    calendar_event_id: Optional[str]
    created_at: datetime


class ChunkRunResponse(ApiModel):
    status: Literal["decomposed", "degraded", "failed"]
    degraded: bool
    reason: Optional[str] = None
    chunks: List[ChunkPayload]
    request_id: str
