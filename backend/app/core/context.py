"""Per-request context shared with log records and error payloads."""
from __future__ import annotations

from contextvars import ContextVar

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Return the id of the request currently being handled, if any."""
    return request_id_ctx_var.get()
