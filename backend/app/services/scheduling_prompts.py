"""Slot scoring, rebalancing, what-if simulation and summaries, all delegated to the generator."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings
from app.core.errors import ResponseShapeError
from app.observability.tracing import trace
from app.services.generation.base import GenerationRequest, Generator
from app.services.response_normalizer import normalize, validate_shape

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SlotScore(_CamelModel):
    slot_index: int = Field(..., ge=0, alias="slotIndex")
    chunk_index: int = Field(..., ge=0, alias="chunkIndex")
    score: float = Field(..., ge=1, le=10)


class Assignment(_CamelModel):
    chunk_index: int = Field(..., ge=0, alias="chunkIndex")
    slot_index: int = Field(..., ge=0, alias="slotIndex")


class ChunkMove(_CamelModel):
    chunk_index: int = Field(..., ge=0, alias="chunkIndex")
    from_slot: Optional[int] = Field(default=None, alias="fromSlot")
    to_slot: Optional[int] = Field(default=None, alias="toSlot")


class SimulationDiff(_CamelModel):
    moved: List[ChunkMove] = Field(default_factory=list)
    unassigned: List[int] = Field(default_factory=list)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def _call(
    generator: Generator,
    name: str,
    prompt: str,
    *,
    model: str,
    temperature: float,
    request_id: Optional[str],
) -> str:
    request = GenerationRequest(
        model=model,
        prompt=prompt,
        max_output_tokens=settings.schedule_max_output_tokens,
        temperature=temperature,
    )
    with trace(f"schedule.{name}", metadata={"model": model}, request_id=request_id):
        result = generator.generate(request)
    return result.text


def score_slots(
    generator: Generator,
    slots: Sequence[Dict[str, Any]],
    chunks: Sequence[Dict[str, Any]],
    *,
    request_id: Optional[str] = None,
) -> List[SlotScore]:
    prompt = (
        "We have these free time slots and these task chunks with tags:\n"
        f"Slots: {_dump(list(slots))}\n"
        f"Chunks: {_dump(list(chunks))}\n"
        "For each slot-chunk pair, assign a suitability score from 1 to 10.\n"
        "Return ONLY a JSON array of { slotIndex, chunkIndex, score }."
    )
    text = _call(
        generator,
        "score",
        prompt,
        model=settings.scoring_model,
        temperature=settings.schedule_temperature,
        request_id=request_id,
    )
    scores = validate_shape(normalize(text), List[SlotScore])
    _check_indexes([(s.slot_index, s.chunk_index) for s in scores], len(slots), len(chunks))
    return scores


def rebalance(
    generator: Generator,
    slots: Sequence[Dict[str, Any]],
    chunks: Sequence[Dict[str, Any]],
    scores: Sequence[Dict[str, Any]],
    *,
    request_id: Optional[str] = None,
) -> List[Assignment]:
    prompt = (
        "Optimize the upcoming week: assign each task chunk to a free slot to maximize total score.\n"
        "Constraints: no overlaps, deadlines must be met, dependencies respected.\n"
        "Input:\n"
        f"  Slots: {_dump(list(slots))}\n"
        f"  Chunks: {_dump(list(chunks))}\n"
        f"  Scores: {_dump(list(scores))}\n"
        "Return ONLY a JSON array of { chunkIndex, slotIndex }."
    )
    text = _call(
        generator,
        "rebalance",
        prompt,
        model=settings.scoring_model,
        temperature=settings.schedule_temperature,
        request_id=request_id,
    )
    assignments = validate_shape(normalize(text), List[Assignment])
    _check_indexes([(a.slot_index, a.chunk_index) for a in assignments], len(slots), len(chunks))
    return assignments


def simulate_event(
    generator: Generator,
    slots: Sequence[Dict[str, Any]],
    chunks: Sequence[Dict[str, Any]],
    scores: Sequence[Dict[str, Any]],
    event: Dict[str, Any],
    *,
    request_id: Optional[str] = None,
) -> SimulationDiff:
    prompt = (
        f"Simulate adding a hypothetical event ({event.get('start')} to {event.get('end')}).\n"
        "Given:\n"
        f"  Current Slots: {_dump(list(slots))}\n"
        f"  Chunks: {_dump(list(chunks))}\n"
        f"  Scores: {_dump(list(scores))}\n"
        "Recompute the schedule and return ONLY the diff as JSON: "
        "{ moved: [{ chunkIndex, fromSlot, toSlot }], unassigned: [chunkIndex] }."
    )
    text = _call(
        generator,
        "simulate",
        prompt,
        model=settings.scoring_model,
        temperature=settings.schedule_temperature,
        request_id=request_id,
    )
    return validate_shape(normalize(text), SimulationDiff)


def summarize_schedule(
    generator: Generator,
    schedule: Sequence[Dict[str, Any]],
    *,
    request_id: Optional[str] = None,
) -> str:
    prompt = (
        "Summarize the schedule for tomorrow:\n"
        f"{_dump(list(schedule))}\n"
        "Draft a brief, actionable summary."
    )
    text = _call(
        generator,
        "summary",
        prompt,
        model=settings.summary_model,
        temperature=settings.summary_temperature,
        request_id=request_id,
    )
    return _require_text(text, "summary")


def productivity_insights(
    generator: Generator,
    stats: Dict[str, Any],
    *,
    request_id: Optional[str] = None,
) -> str:
    prompt = (
        "Here are your productivity stats:\n"
        f"{_dump(stats)}\n"
        "Provide 3 insights or tips based on these metrics."
    )
    text = _call(
        generator,
        "insights",
        prompt,
        model=settings.summary_model,
        temperature=settings.summary_temperature,
        request_id=request_id,
    )
    return _require_text(text, "insights")


def _require_text(text: str, kind: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ResponseShapeError(f"Generator returned an empty {kind}")
    return cleaned


def _check_indexes(pairs: List[tuple[int, int]], slot_count: int, chunk_count: int) -> None:
    for slot_index, chunk_index in pairs:
        if slot_index >= slot_count or chunk_index >= chunk_count:
            logger.warning(
                "Generator referenced slot %d / chunk %d outside %d slots / %d chunks",
                slot_index,
                chunk_index,
                slot_count,
                chunk_count,
            )
            raise ResponseShapeError(
                "Generator output references a slot or chunk that does not exist",
                details={"slotIndex": slot_index, "chunkIndex": chunk_index},
            )
