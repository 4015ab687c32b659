"""Generator-backed task decomposition service."""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence
from uuid import UUID

from app.core.config import settings
from app.core.errors import MalformedResponseError, ResponseShapeError, SchedulerError, UpstreamError
from app.db.models.task import Task
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.generation.base import GenerationRequest, Generator
from app.services.response_normalizer import ChunkCandidate, normalize, validate_chunk_candidates

logger = logging.getLogger(__name__)

OutcomeStatus = Literal["decomposed", "degraded", "failed"]


@dataclass
class ChunkDraft:
    """A chunk tied to its task but not yet persisted."""

    task_id: UUID
    title: str
    duration_min: int
    tags: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DecompositionOutcome:
    status: OutcomeStatus
    chunks: List[ChunkDraft] = field(default_factory=list)
    reason: Optional[str] = None
    error: Optional[SchedulerError] = None

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"


def task_payload(task: Task, chunk_size: int) -> Dict[str, Any]:
    """Prompt-facing view of a task; deadline, dependsOn and tags are passed through as-is."""
    payload: Dict[str, Any] = {
        "id": str(task.id),
        "title": task.title,
        "estimate": task.estimate_min,
        "chunkSize": chunk_size,
    }
    if task.deadline is not None:
        payload["deadline"] = task.deadline.isoformat()
    if task.depends_on is not None:
        payload["dependsOn"] = str(task.depends_on)
    if task.tags:
        payload["tags"] = task.tags
    return payload


def build_decomposition_prompt(payloads: List[Dict[str, Any]], chunk_size: int) -> str:
    return (
        f"Break these tasks into sub-tasks of at most {chunk_size} minutes each.\n"
        "Every task whose estimate is longer than its chunkSize must be split into several parts "
        'titled "<task title> - Part N" (N starting at 1); shorter tasks stay a single chunk with the '
        "original title. The durations of a task's parts must add up to its estimate.\n"
        f"Input JSON:\n{json.dumps(payloads, indent=2)}\n"
        "Return ONLY a JSON array of objects with the keys taskId, title, duration, tags. "
        "taskId must repeat the id of the task the chunk belongs to; duration is in minutes; "
        "tags is an object. No prose, no markdown."
    )


def fallback_chunk(task: Task) -> ChunkDraft:
    return ChunkDraft(
        task_id=task.id,
        title=f"{task.title} - Full",
        duration_min=task.estimate_min,
        tags={},
    )


def decompose(
    tasks: Sequence[Task],
    generator: Generator,
    *,
    chunk_size: Optional[int] = None,
    request_id: Optional[str] = None,
) -> DecompositionOutcome:
    """Ask the generator to split ``tasks`` into chunks.

    Unparseable or mis-shaped output degrades to one ``"<title> - Full"`` chunk per
    task; an upstream failure yields a ``failed`` outcome carrying the error. Every
    task in a non-failed outcome has at least one chunk.
    """
    if not tasks:
        return DecompositionOutcome(status="decomposed")

    size = chunk_size or settings.default_chunk_size_min
    payloads = [task_payload(task, size) for task in tasks]
    request = GenerationRequest(
        model=settings.chunk_model,
        prompt=build_decomposition_prompt(payloads, size),
        max_output_tokens=settings.chunk_max_output_tokens,
        temperature=settings.chunk_temperature,
    )
    metadata = {"task_count": len(tasks), "chunk_size": size, "model": request.model}

    try:
        with trace("chunk.generate", metadata=metadata, request_id=request_id):
            result = generator.generate(request)
    except UpstreamError as exc:
        logger.error("Decomposition of %d task(s) failed upstream: %s", len(tasks), exc.message)
        log_metric("chunk.decompose.failed", 1, metadata=metadata)
        return DecompositionOutcome(status="failed", reason=exc.message, error=exc)

    try:
        candidates = validate_chunk_candidates(normalize(result.text))
    except (MalformedResponseError, ResponseShapeError) as exc:
        logger.warning("Generator output unusable (%s); falling back to whole-task chunks", exc.error)
        log_metric("chunk.decompose.degraded", 1, metadata={**metadata, "reason": exc.error})
        return DecompositionOutcome(
            status="degraded",
            chunks=[fallback_chunk(task) for task in tasks],
            reason=exc.message,
            error=exc,
        )

    outcome = _assign_candidates(tasks, candidates)
    _warn_on_duration_mismatch(tasks, outcome.chunks)
    log_metric("chunk.decompose.chunks", len(outcome.chunks), metadata={**metadata, "status": outcome.status})
    return outcome


def _assign_candidates(tasks: Sequence[Task], candidates: List[ChunkCandidate]) -> DecompositionOutcome:
    by_id = {str(task.id): task for task in tasks}
    by_title: Dict[str, List[Task]] = defaultdict(list)
    for task in tasks:
        by_title[task.title].append(task)

    chunks: List[ChunkDraft] = []
    dropped = 0
    for candidate in candidates:
        task = _resolve_task(candidate, by_id, by_title)
        if task is None:
            dropped += 1
            logger.warning("Dropping chunk %r: no matching task", candidate.title)
            continue
        chunks.append(
            ChunkDraft(
                task_id=task.id,
                title=candidate.title,
                duration_min=candidate.duration,
                tags=dict(candidate.tags),
            )
        )

    covered = {chunk.task_id for chunk in chunks}
    missing = [task for task in tasks if task.id not in covered]
    chunks.extend(fallback_chunk(task) for task in missing)

    if not dropped and not missing:
        return DecompositionOutcome(status="decomposed", chunks=chunks)

    reasons = []
    if dropped:
        reasons.append(f"{dropped} chunk(s) could not be matched to a task")
    if missing:
        reasons.append(f"{len(missing)} task(s) received a fallback chunk")
    return DecompositionOutcome(status="degraded", chunks=chunks, reason="; ".join(reasons))


def _resolve_task(
    candidate: ChunkCandidate,
    by_id: Dict[str, Task],
    by_title: Dict[str, List[Task]],
) -> Optional[Task]:
    if candidate.task_id is not None and candidate.task_id in by_id:
        return by_id[candidate.task_id]

    for title in (candidate.title, candidate.title.rsplit(" - ", 1)[0]):
        matches = by_title.get(title, [])
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            return None
    return None


def _warn_on_duration_mismatch(tasks: Sequence[Task], chunks: List[ChunkDraft]) -> None:
    totals: Dict[UUID, int] = defaultdict(int)
    for chunk in chunks:
        totals[chunk.task_id] += chunk.duration_min
    for task in tasks:
        if totals[task.id] != task.estimate_min:
            logger.warning(
                "Chunks for task %s sum to %d min but the estimate is %d min",
                task.id,
                totals[task.id],
                task.estimate_min,
            )
