"""Persistence helpers for the chunking pipeline: select, claim, store, release."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import PersistenceError
from app.db.models.chunk import Chunk
from app.db.models.task import (
    CHUNK_STATUS_CHUNKED,
    CHUNK_STATUS_CHUNKING,
    CHUNK_STATUS_UNCHUNKED,
    Task,
)
from app.services.task_decomposer import ChunkDraft

logger = logging.getLogger(__name__)


def _claimable(now: datetime):
    """Unchunked tasks, plus ``chunking`` claims abandoned by a request that never finished."""
    cutoff = now - timedelta(seconds=settings.chunk_claim_timeout_seconds)
    return or_(
        Task.chunk_status == CHUNK_STATUS_UNCHUNKED,
        and_(
            Task.chunk_status == CHUNK_STATUS_CHUNKING,
            or_(Task.claimed_at.is_(None), Task.claimed_at < cutoff),
        ),
    )


def fetch_unchunked_tasks(db: Session) -> List[Task]:
    try:
        return (
            db.query(Task)
            .filter(_claimable(datetime.now(timezone.utc)), ~Task.chunks.any())
            .order_by(Task.created_at.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load unchunked tasks") from exc


def claim_tasks(db: Session, tasks: Iterable[Task]) -> List[Task]:
    """Move each claimable task to ``chunking``; return the ones this caller won."""
    claimed: List[Task] = []
    now = datetime.now(timezone.utc)
    try:
        for task in tasks:
            result = db.execute(
                update(Task)
                .where(Task.id == task.id, _claimable(now))
                .values(chunk_status=CHUNK_STATUS_CHUNKING, claimed_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                claimed.append(task)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to claim tasks for chunking") from exc

    for task in claimed:
        db.refresh(task)
    return claimed


def release_claims(db: Session, task_ids: Iterable[UUID]) -> None:
    ids = list(task_ids)
    if not ids:
        return
    try:
        db.execute(
            update(Task)
            .where(Task.id.in_(ids), Task.chunk_status == CHUNK_STATUS_CHUNKING)
            .values(chunk_status=CHUNK_STATUS_UNCHUNKED, claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # Left in "chunking" until the claim times out.
        logger.exception("Failed to release chunking claims for %d task(s)", len(ids))


def persist_chunks(db: Session, tasks: List[Task], drafts: List[ChunkDraft]) -> List[Chunk]:
    """Store all drafts and mark ``tasks`` chunked in a single transaction."""
    task_ids = [task.id for task in tasks]
    chunks = [
        Chunk(
            task_id=draft.task_id,
            title=draft.title,
            duration_min=draft.duration_min,
            tags=draft.tags,
            position=position,
        )
        for position, draft in enumerate(drafts)
    ]
    try:
        db.add_all(chunks)
        for task in tasks:
            task.chunk_status = CHUNK_STATUS_CHUNKED
            task.claimed_at = None
            db.add(task)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        release_claims(db, task_ids)
        raise PersistenceError("Failed to store chunks") from exc

    for chunk in chunks:
        db.refresh(chunk)
    return chunks
