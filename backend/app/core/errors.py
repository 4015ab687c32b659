"""Error taxonomy and the HTTP translation for it."""
from __future__ import annotations

import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Base class for errors the API knows how to report."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(SchedulerError):
    """A required setting (usually a credential) is missing or invalid."""

    error = "configuration_error"


class UpstreamError(SchedulerError):
    """The generator call failed or its response carried no text."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "upstream_error"


class MalformedResponseError(SchedulerError):
    """Generated text could not be parsed as JSON."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "malformed_response"


class ResponseShapeError(SchedulerError):
    """Generated JSON parsed but does not have the expected fields or types."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "response_shape_error"


class PersistenceError(SchedulerError):
    """A database read or write failed."""

    error = "persistence_error"


class ValidationError(SchedulerError):
    """The caller sent input the API cannot accept."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error = "validation_error"


def error_payload(exc: SchedulerError, request_id: str | None) -> Dict[str, Any]:
    return _payload(exc.error, exc.message, request_id, details=exc.details, exc=exc)


def _payload(
    error: str,
    detail: str,
    request_id: str | None,
    *,
    details: Any = None,
    exc: BaseException | None = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "error": error,
        "detail": detail,
        "request_id": request_id or "",
    }
    if details is not None:
        payload["details"] = details
    if settings.debug and exc is not None:
        payload["trace"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return payload


async def scheduler_error_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.error, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc, request_id))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.info("validation_error on %s %s", request.method, request.url.path)
    content = _payload(
        ValidationError.error,
        "Request validation failed",
        request_id,
        details=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(status_code=ValidationError.status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    content = _payload(SchedulerError.error, "Internal server error", request_id, exc=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Render taxonomy errors, request validation failures and anything unexpected as JSON."""
    app.add_exception_handler(SchedulerError, scheduler_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
