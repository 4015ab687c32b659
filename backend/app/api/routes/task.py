"""Task creation and listing API routes."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.api.routes.serializers import serialize_task
from app.api.schemas.task import TaskCreateRequest, TaskPayload
from app.core.errors import PersistenceError, ValidationError
from app.db.deps import get_db
from app.db.models.task import CHUNK_STATUS_UNCHUNKED, Task
from app.observability.metrics import log_metric
from app.observability.tracing import trace

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/tasks",
    response_model=TaskPayload,
    status_code=status.HTTP_201_CREATED,
    tags=["tasks"],
)
def create_task(
    payload: TaskCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskPayload:
    """Store a new task; tags are kept as a structured value."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/tasks",
        "estimate": payload.estimate,
        "has_deadline": payload.deadline is not None,
        "has_dependency": payload.depends_on is not None,
        "request_id": request_id,
    }

    success = False
    start = perf_counter()
    try:
        with trace("task.create", metadata=metadata, request_id=request_id):
            if payload.depends_on is not None:
                try:
                    dependency = db.get(Task, payload.depends_on)
                except SQLAlchemyError as exc:
                    raise PersistenceError("Failed to look up dependsOn task") from exc
                if dependency is None:
                    raise ValidationError(
                        "dependsOn does not reference an existing task",
                        details={"dependsOn": str(payload.depends_on)},
                    )

            task = Task(
                title=payload.title,
                estimate_min=payload.estimate,
                deadline=payload.deadline,
                tags=payload.tags,
                depends_on=payload.depends_on,
                chunk_status=CHUNK_STATUS_UNCHUNKED,
            )
            db.add(task)
            try:
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError("Failed to save task") from exc
            db.refresh(task)
            success = True
    finally:
        log_metric("task.create.success", 1 if success else 0, metadata={"request_id": request_id})
        log_metric("task.create.latency_ms", (perf_counter() - start) * 1000)

    logger.info("Created task %s (%d min)", task.id, task.estimate_min)
    return serialize_task(task, request_id=request_id or "")


@router.get("/tasks", response_model=List[TaskPayload], tags=["tasks"])
def list_tasks(
    http_request: Request,
    include_chunks: bool = Query(True, description="Embed each task's chunks"),
    db: Session = Depends(get_db),
) -> List[TaskPayload]:
    """List every task in creation order, optionally with its chunks."""
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "task.list",
        metadata={"route": "/tasks", "include_chunks": include_chunks, "request_id": request_id},
        request_id=request_id,
    ):
        query = db.query(Task)
        if include_chunks:
            query = query.options(selectinload(Task.chunks))
        try:
            tasks = query.order_by(Task.created_at.asc()).all()
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load tasks") from exc

    log_metric("task.list.count", len(tasks), metadata={"include_chunks": include_chunks})
    return [serialize_task(task, include_chunks=include_chunks) for task in tasks]
