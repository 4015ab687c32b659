"""Decomposition trigger: chunk every task that has no chunks yet."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.routes.serializers import serialize_chunk
from app.api.schemas.chunk import ChunkRunResponse
from app.db.deps import get_db
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.generation.base import Generator
from app.services.generation.factory import get_generator
from app.services.task_chunking import claim_tasks, fetch_unchunked_tasks, persist_chunks, release_claims
from app.services.task_decomposer import decompose

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chunk", response_model=ChunkRunResponse, tags=["chunks"])
def chunk_tasks(
    http_request: Request,
    db: Session = Depends(get_db),
    generator: Generator = Depends(get_generator),
) -> ChunkRunResponse:
    """Decompose all unchunked tasks through the generator and store the chunks."""
    request_id = getattr(http_request.state, "request_id", None) or ""
    metadata: Dict[str, Any] = {"route": "/chunk", "request_id": request_id}
    start = perf_counter()

    with trace("chunk.run", metadata=metadata, request_id=request_id):
        tasks = fetch_unchunked_tasks(db)
        logger.info("Found %d task(s) to chunk", len(tasks))
        if not tasks:
            log_metric("chunk.run.skipped", 1, metadata=metadata)
            return ChunkRunResponse(status="decomposed", degraded=False, chunks=[], request_id=request_id)

        claimed = claim_tasks(db, tasks)
        if len(claimed) < len(tasks):
            logger.info("%d task(s) already claimed by another request", len(tasks) - len(claimed))
        if not claimed:
            return ChunkRunResponse(status="decomposed", degraded=False, chunks=[], request_id=request_id)

        claimed_ids = [task.id for task in claimed]
        try:
            outcome = decompose(claimed, generator, request_id=request_id)
            if outcome.status == "failed":
                raise outcome.error
            chunks = persist_chunks(db, claimed, outcome.chunks)
        except BaseException:
            # Any failure after the claim hands the tasks back for the next run.
            db.rollback()
            release_claims(db, claimed_ids)
            raise

        logger.info("Persisted %d chunk(s) for %d task(s) (%s)", len(chunks), len(claimed), outcome.status)

    log_metric("chunk.run.chunks", len(chunks), metadata={**metadata, "status": outcome.status})
    log_metric("chunk.run.latency_ms", (perf_counter() - start) * 1000, metadata=metadata)
    return ChunkRunResponse(
        status=outcome.status,
        degraded=outcome.degraded,
        reason=outcome.reason,
        chunks=[serialize_chunk(chunk) for chunk in chunks],
        request_id=request_id,
    )
