"""Schemas for the generator-backed scheduling endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from pydantic import Field, model_validator

from app.api.schemas.common import ApiModel
from app.services.scheduling_prompts import Assignment, ChunkMove, SlotScore


class Slot(ApiModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "Slot":
        if self.start >= self.end:
            raise ValueError("slot start must be before end")
        return self


class ScoreRequest(ApiModel):
    slots: List[Slot] = Field(..., min_length=1)
    chunks: List[Dict[str, Any]] = Field(..., min_length=1)


class RebalanceRequest(ScoreRequest):
    scores: List[SlotScore] = Field(default_factory=list)


class SimulateRequest(RebalanceRequest):
    event: Slot


class SummaryRequest(ApiModel):
    schedule: List[Dict[str, Any]]


class InsightsRequest(ApiModel):
    stats: Dict[str, Any]


class ScoreResponse(ApiModel):
    scores: List[SlotScore]
    request_id: str


class RebalanceResponse(ApiModel):
    assignments: List[Assignment]
    request_id: str


class SimulateResponse(ApiModel):
    moved: List[ChunkMove]
    unassigned: List[int]
    request_id: str


class SummaryResponse(ApiModel):
    summary: str
    request_id: str


class InsightsResponse(ApiModel):
    insights: str
    request_id: str
