"""Scheduling endpoints that forward slot and chunk data to the generator."""
from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request

from app.api.schemas.schedule import (
    InsightsRequest,
    InsightsResponse,
    RebalanceRequest,
    RebalanceResponse,
    ScoreRequest,
    ScoreResponse,
    SimulateRequest,
    SimulateResponse,
    Slot,
    SummaryRequest,
    SummaryResponse,
)
from app.observability.metrics import log_metric
from app.services import scheduling_prompts
from app.services.generation.base import Generator
from app.services.generation.factory import get_generator

router = APIRouter()


def _slots(slots: List[Slot]) -> List[Dict[str, Any]]:
    return [slot.model_dump(mode="json") for slot in slots]


def _request_id(http_request: Request) -> str:
    return getattr(http_request.state, "request_id", None) or ""


@router.post("/schedule/score", response_model=ScoreResponse, tags=["schedule"])
def score_slots_endpoint(
    payload: ScoreRequest,
    http_request: Request,
    generator: Generator = Depends(get_generator),
) -> ScoreResponse:
    """Score every slot/chunk pair for suitability."""
    request_id = _request_id(http_request)
    scores = scheduling_prompts.score_slots(
        generator, _slots(payload.slots), payload.chunks, request_id=request_id
    )
    log_metric("schedule.score.pairs", len(scores))
    return ScoreResponse(scores=scores, request_id=request_id)


@router.post("/schedule/rebalance", response_model=RebalanceResponse, tags=["schedule"])
def rebalance_endpoint(
    payload: RebalanceRequest,
    http_request: Request,
    generator: Generator = Depends(get_generator),
) -> RebalanceResponse:
    request_id = _request_id(http_request)
    assignments = scheduling_prompts.rebalance(
        generator,
        _slots(payload.slots),
        payload.chunks,
        [score.model_dump(by_alias=True) for score in payload.scores],
        request_id=request_id,
    )
    log_metric("schedule.rebalance.assignments", len(assignments))
    return RebalanceResponse(assignments=assignments, request_id=request_id)


@router.post("/schedule/simulate", response_model=SimulateResponse, tags=["schedule"])
def simulate_endpoint(
    payload: SimulateRequest,
    http_request: Request,
    generator: Generator = Depends(get_generator),
) -> SimulateResponse:
    """Ask how the schedule would change if a hypothetical event were added."""
    request_id = _request_id(http_request)
    diff = scheduling_prompts.simulate_event(
        generator,
        _slots(payload.slots),
        payload.chunks,
        [score.model_dump(by_alias=True) for score in payload.scores],
        payload.event.model_dump(mode="json"),
        request_id=request_id,
    )
    log_metric("schedule.simulate.moved", len(diff.moved))
    return SimulateResponse(moved=diff.moved, unassigned=diff.unassigned, request_id=request_id)


@router.post("/schedule/summary", response_model=SummaryResponse, tags=["schedule"])
def summary_endpoint(
    payload: SummaryRequest,
    http_request: Request,
    generator: Generator = Depends(get_generator),
) -> SummaryResponse:
    request_id = _request_id(http_request)
    summary = scheduling_prompts.summarize_schedule(generator, payload.schedule, request_id=request_id)
    return SummaryResponse(summary=summary, request_id=request_id)


@router.post("/analytics/insights", response_model=InsightsResponse, tags=["analytics"])
def insights_endpoint(
    payload: InsightsRequest,
    http_request: Request,
    generator: Generator = Depends(get_generator),
) -> InsightsResponse:
    request_id = _request_id(http_request)
    insights = scheduling_prompts.productivity_insights(generator, payload.stats, request_id=request_id)
    return InsightsResponse(insights=insights, request_id=request_id)
