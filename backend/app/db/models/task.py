"""Task ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import JSONBCompat

CHUNK_STATUS_UNCHUNKED = "unchunked"
CHUNK_STATUS_CHUNKING = "chunking"
CHUNK_STATUS_CHUNKED = "chunked"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_chunk_status", "chunk_status"),
        Index("ix_tasks_depends_on", "depends_on"),
        CheckConstraint("estimate_min > 0", name="ck_tasks_estimate_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(Text, nullable=False)
    estimate_min = Column(Integer, nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=True)
    tags = Column(JSONBCompat, nullable=False, default=dict)
    # Opaque link to another task; stored and returned, never interpreted.
    depends_on = Column(
        UUID(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    chunk_status = Column(
        String(20),
        nullable=False,
        default=CHUNK_STATUS_UNCHUNKED,
        server_default=sa_text(f"'{CHUNK_STATUS_UNCHUNKED}'"),
    )
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    chunks = relationship(
        "Chunk",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Chunk.position",
    )
