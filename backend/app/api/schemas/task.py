"""Schemas for task creation and listing."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.api.schemas.chunk import ChunkPayload
from app.api.schemas.common import ApiModel


class TaskCreateRequest(ApiModel):
    title: str = Field(..., min_length=1, max_length=500)
    estimate: int = Field(..., gt=0, le=10_000, description="Estimated duration in minutes.")
    deadline: Optional[datetime] = None
    tags: Dict[str, Any] = Field(default_factory=dict)
    depends_on: Optional[UUID] = None

    @field_validator("title")
    @classmethod
    def trim_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("title must not be blank")
        return cleaned

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, value: Any) -> Any:
        return {} if value is None else value


class TaskPayload(ApiModel):
    id: UUID
    title: str
    estimate: int
    deadline: Optional[datetime]
    tags: Dict[str, Any]
    depends_on: Optional[UUID]
    chunk_status: Literal["unchunked", "chunking", "chunked"]
    created_at: datetime
    updated_at: datetime
    chunks: Optional[List[ChunkPayload]] = None
    request_id: Optional[str] = None
