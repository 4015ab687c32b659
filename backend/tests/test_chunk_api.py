from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi.testclient import TestClient

from app.core import errors
from app.core.errors import UpstreamError
from app.db.models.chunk import Chunk
from app.db.models.task import Task
from app.main import app

from conftest import prompt_tasks


def _create(test_client, title: str, estimate: int) -> str:
    response = test_client.post("/tasks", json={"title": title, "estimate": estimate})
    assert response.status_code == 201
    return response.json()["id"]


def test_no_unchunked_tasks_short_circuits(client) -> None:
    test_client, _, generator = client

    response = test_client.post("/chunk")

    assert response.status_code == 200
    body = response.json()
    assert body["chunks"] == []
    assert body["status"] == "decomposed"
    assert body["degraded"] is False
    assert generator.requests == []


def test_two_tasks_yield_three_chunks_with_correct_task_ids(client) -> None:
    test_client, session_factory, generator = client
    report_id = _create(test_client, "Write report", 120)
    email_id = _create(test_client, "Email client", 30)

    response = test_client.post("/chunk")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "decomposed"
    assert body["degraded"] is False
    assert len(generator.requests) == 1
    assert [(c["taskId"], c["title"], c["duration"]) for c in body["chunks"]] == [
        (report_id, "Write report - Part 1", 60),
        (report_id, "Write report - Part 2", 60),
        (email_id, "Email client", 30),
    ]

    with session_factory() as db:
        assert db.query(Chunk).count() == 3
        assert {task.chunk_status for task in db.query(Task).all()} == {"chunked"}
        report = db.get(Task, UUID(report_id))
        assert sum(chunk.duration_min for chunk in report.chunks) == 120


def test_chunking_runs_once_per_task(client) -> None:
    test_client, _, generator = client
    _create(test_client, "Write report", 120)
    test_client.post("/chunk")

    again = test_client.post("/chunk")

    assert again.json()["chunks"] == []
    assert len(generator.requests) == 1

    new_id = _create(test_client, "Email client", 30)
    third = test_client.post("/chunk").json()
    assert [chunk["taskId"] for chunk in third["chunks"]] == [new_id]
    assert [task["id"] for task in prompt_tasks(generator.requests[-1].prompt)] == [new_id]


def test_malformed_output_is_flagged_degraded(client) -> None:
    test_client, session_factory, generator = client
    generator.responder = "Here you go: tasks are split!"
    _create(test_client, "Write report", 120)
    _create(test_client, "Email client", 30)

    response = test_client.post("/chunk")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["degraded"] is True
    assert body["reason"]
    assert [(c["title"], c["duration"]) for c in body["chunks"]] == [
        ("Write report - Full", 120),
        ("Email client - Full", 30),
    ]
    with session_factory() as db:
        assert db.query(Chunk).count() == 2


def test_upstream_failure_returns_502_and_releases_claims(client) -> None:
    test_client, session_factory, generator = client
    _create(test_client, "Write report", 120)
    generator.error = UpstreamError("Generator returned HTTP 503", details={"status_code": 503})

    response = test_client.post("/chunk")

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "upstream_error"
    assert body["detail"] == "Generator returned HTTP 503"
    assert body["request_id"] == response.headers["X-Request-Id"]
    with session_factory() as db:
        assert db.query(Chunk).count() == 0
        assert db.query(Task).one().chunk_status == "unchunked"

    generator.error = None
    retry = test_client.post("/chunk")
    assert retry.status_code == 200
    assert len(retry.json()["chunks"]) == 2


def test_tasks_claimed_elsewhere_are_skipped(client) -> None:
    test_client, session_factory, generator = client
    busy_id = _create(test_client, "Write report", 120)
    free_id = _create(test_client, "Email client", 30)
    with session_factory() as db:
        busy = db.get(Task, UUID(busy_id))
        busy.chunk_status = "chunking"
        busy.claimed_at = datetime.now(timezone.utc)
        db.commit()

    body = test_client.post("/chunk").json()

    assert [chunk["taskId"] for chunk in body["chunks"]] == [free_id]
    with session_factory() as db:
        assert db.get(Task, UUID(busy_id)).chunk_status == "chunking"


def test_debug_mode_adds_trace_to_errors(client, monkeypatch) -> None:
    test_client, _, generator = client
    monkeypatch.setattr(errors.settings, "debug", True)
    _create(test_client, "Write report", 120)
    generator.error = UpstreamError("boom")

    body = test_client.post("/chunk").json()

    assert "UpstreamError" in body["trace"]


def test_unexpected_generator_error_releases_claims(client) -> None:
    _, session_factory, generator = client
    lenient_client = TestClient(app, raise_server_exceptions=False)
    _create(lenient_client, "Write report", 120)
    generator.error = RuntimeError("sdk blew up")

    response = lenient_client.post("/chunk", headers={"X-Request-Id": "req-crash"})

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["error"] == "internal_error"
    assert body["detail"] == "Internal server error"
    assert body["request_id"] == "req-crash"
    assert "sdk blew up" not in body["detail"]
    with session_factory() as db:
        task = db.query(Task).one()
        assert task.chunk_status == "unchunked"
        assert task.claimed_at is None

    generator.error = None
    retry = lenient_client.post("/chunk")
    assert retry.status_code == 200
    assert len(retry.json()["chunks"]) == 2


def test_debug_mode_adds_trace_to_unexpected_errors(client, monkeypatch) -> None:
    _, _, generator = client
    monkeypatch.setattr(errors.settings, "debug", True)
    lenient_client = TestClient(app, raise_server_exceptions=False)
    _create(lenient_client, "Write report", 120)
    generator.error = RuntimeError("sdk blew up")

    body = lenient_client.post("/chunk").json()

    assert "RuntimeError: sdk blew up" in body["trace"]
