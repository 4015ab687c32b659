"""Turn raw generator text into validated structured values."""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import MalformedResponseError, ResponseShapeError

T = TypeVar("T")

# Optional language tag after the opening fence, e.g. ```json
_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?(?P<body>.*?)\n?[ \t]*```$", re.DOTALL)
MAX_EXCERPT = 200


class ChunkCandidate(BaseModel):
    """One chunk as emitted by the generator, before it is tied to a task."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    task_id: str | None = Field(default=None, alias="taskId")
    title: str = Field(..., min_length=1)
    duration: int = Field(..., gt=0)
    tags: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("task_id", mode="before")
    @classmethod
    def stringify_task_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, list):
            return {"labels": value}
        return value


def strip_code_fence(raw_text: str) -> str:
    cleaned = raw_text.strip()
    match = _FENCE_RE.match(cleaned)
    if match:
        return match.group("body").strip()
    return cleaned


def normalize(raw_text: str) -> Any:
    """Strip an optional markdown fence and parse the remaining text as JSON."""
    cleaned = strip_code_fence(raw_text or "")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            "Generator output is not valid JSON",
            details={"position": exc.pos, "excerpt": cleaned[:MAX_EXCERPT]},
        ) from exc


def validate_shape(value: Any, shape: Type[T] | Any) -> T:
    """Validate ``value`` against a pydantic model or type, raising ResponseShapeError."""
    try:
        return TypeAdapter(shape).validate_python(value)
    except PydanticValidationError as exc:
        raise ResponseShapeError(
            "Generator output does not have the expected shape",
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def validate_chunk_candidates(value: Any) -> List[ChunkCandidate]:
    return validate_shape(value, List[ChunkCandidate])
