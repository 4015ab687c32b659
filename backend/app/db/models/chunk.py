"""Chunk ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import JSONBCompat


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Chunk(Base):
    __tablename__ = "chunks"
    __table_args__ = (Index("ix_chunks_task_id", "task_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    # Emission order within the decomposition that produced the chunk.
    position = Column(Integer, nullable=False, default=0)
    tags = Column(JSONBCompat, nullable=False, default=dict)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    calendar_event_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

    task = relationship("Task", back_populates="chunks")
