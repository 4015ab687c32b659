"""Main FastAPI application for the scheduler backend."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes.chunk import router as chunk_router
from app.api.routes.schedule import router as schedule_router
from app.api.routes.task import router as task_router
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestIDMiddleware
from app.observability.client import init_opik
from app.observability.tracing import trace
from app.services.generation.factory import get_generator

configure_logging(log_level=settings.log_level, debug=settings.debug)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)
app.add_middleware(RequestIDMiddleware)
register_exception_handlers(app)
app.include_router(task_router)
app.include_router(chunk_router)
app.include_router(schedule_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.on_event("startup")
async def startup_generator() -> None:
    """Resolve the generator up front so a missing credential stops the service at boot."""
    if get_generator in app.dependency_overrides:
        return
    generator = get_generator()
    logger.info("Generator provider: %s", generator.provider)


@app.get("/", tags=["health"], summary="Liveness probe")
async def root() -> dict[str, str]:
    return {"message": "Backend up and running"}


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
