from __future__ import annotations

import json
import math
from typing import Any, Callable, Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db import models  # noqa: F401  ensure models are loaded
from app.db.deps import get_db
from app.main import app
from app.services.generation.base import GenerationRequest, GenerationResult, Generator
from app.services.generation.factory import get_generator


def prompt_tasks(prompt: str) -> List[Dict[str, Any]]:
    """Pull the task list back out of a decomposition prompt."""
    body = prompt.split("Input JSON:\n", 1)[1].split("\nReturn ONLY", 1)[0]
    return json.loads(body)


def split_tasks(request: GenerationRequest) -> str:
    """Behave like a well-mannered model: split by chunkSize, fence the answer."""
    chunks: List[Dict[str, Any]] = []
    for task in prompt_tasks(request.prompt):
        size = task["chunkSize"]
        estimate = task["estimate"]
        if estimate <= size:
            chunks.append({"taskId": task["id"], "title": task["title"], "duration": estimate, "tags": {}})
            continue
        remaining = estimate
        for part in range(1, math.ceil(estimate / size) + 1):
            duration = min(size, remaining)
            remaining -= duration
            chunks.append(
                {
                    "taskId": task["id"],
                    "title": f"{task['title']} - Part {part}",
                    "duration": duration,
                    "tags": {"part": part},
                }
            )
    return "```json\n" + json.dumps(chunks) + "\n```"


class FakeGenerator(Generator):
    """Deterministic stand-in for a real provider; records every request."""

    provider = "fake"

    def __init__(self, responder: Callable[[GenerationRequest], str] | str = split_tasks) -> None:
        self.responder = responder
        self.requests: List[GenerationRequest] = []
        self.error: Exception | None = None

    def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        text = self.responder(request) if callable(self.responder) else self.responder
        return GenerationResult(text=text, model=request.model, provider=self.provider)


@pytest.fixture()
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture()
def client(session_factory, fake_generator):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generator] = lambda: fake_generator
    with TestClient(app) as test_client:
        yield test_client, session_factory, fake_generator
    app.dependency_overrides.clear()
