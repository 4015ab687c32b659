"""Lightweight metrics helpers."""
from __future__ import annotations

from typing import Any, Dict, Optional

from app.observability import tracing


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record a metric as a one-shot Opik trace; a no-op when Opik is disabled."""
    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update({key: item for key, item in metadata.items() if item is not None})

    metric_trace = tracing.start_trace(f"metric:{name}", payload)
    tracing.end_trace(metric_trace, name)
