"""ORM models exposed for metadata discovery."""
from app.db.models.chunk import Chunk
from app.db.models.task import Task

__all__ = [
    "Chunk",
    "Task",
]
