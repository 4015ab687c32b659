"""ORM to API payload conversion."""
from __future__ import annotations

from typing import Any, Dict

from app.api.schemas.chunk import ChunkPayload
from app.api.schemas.task import TaskPayload
from app.db.models.chunk import Chunk
from app.db.models.task import Task


def _tags(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def serialize_chunk(chunk: Chunk) -> ChunkPayload:
    return ChunkPayload(
        id=chunk.id,
        task_id=chunk.task_id,
        title=chunk.title,
        duration=chunk.duration_min,
        tags=_tags(chunk.tags),
        scheduled_at=chunk.scheduled_at,
        calendar_event_id=chunk.calendar_event_id,
        created_at=chunk.created_at,
    )


def serialize_task(task: Task, *, include_chunks: bool = False, request_id: str | None = None) -> TaskPayload:
    return TaskPayload(
        id=task.id,
        title=task.title,
        estimate=task.estimate_min,
        deadline=task.deadline,
        tags=_tags(task.tags),
        depends_on=task.depends_on,
        chunk_status=task.chunk_status,
        created_at=task.created_at,
        updated_at=task.updated_at,
        chunks=[serialize_chunk(chunk) for chunk in task.chunks] if include_chunks else None,
        request_id=request_id,
    )
