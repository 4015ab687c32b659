from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.db.models.task import Task


def test_create_task_returns_structured_tags(client) -> None:
    test_client, session_factory, _ = client
    response = test_client.post(
        "/tasks",
        json={"title": "  Write report ", "estimate": 120, "tags": {"priority": "high"}},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Write report"
    assert body["estimate"] == 120
    assert body["tags"] == {"priority": "high"}
    assert body["chunkStatus"] == "unchunked"
    assert body["dependsOn"] is None
    assert body["requestId"] == response.headers["X-Request-Id"]

    with session_factory() as db:
        task = db.get(Task, UUID(body["id"]))
        assert task.tags == {"priority": "high"}


def test_tags_round_trip_through_listing(client) -> None:
    test_client, _, _ = client
    test_client.post("/tasks", json={"title": "Write report", "estimate": 120, "tags": {"priority": "high"}})

    listed = test_client.get("/tasks").json()

    assert listed[0]["tags"] == {"priority": "high"}
    assert isinstance(listed[0]["tags"], dict)


def test_create_task_with_deadline_and_dependency(client) -> None:
    test_client, _, _ = client
    first = test_client.post("/tasks", json={"title": "Draft outline", "estimate": 30}).json()

    response = test_client.post(
        "/tasks",
        json={
            "title": "Write report",
            "estimate": 120,
            "deadline": "2026-11-01T17:00:00Z",
            "depends_on": first["id"],
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["dependsOn"] == first["id"]
    assert body["deadline"].startswith("2026-11-01T17:00:00")
    assert body["tags"] == {}


def test_unknown_dependency_is_rejected(client) -> None:
    test_client, session_factory, _ = client
    response = test_client.post(
        "/tasks",
        json={"title": "Write report", "estimate": 120, "dependsOn": str(uuid4())},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["request_id"] == response.headers["X-Request-Id"]
    with session_factory() as db:
        assert db.query(Task).count() == 0


def test_invalid_payloads_are_rejected(client) -> None:
    test_client, _, _ = client

    assert test_client.post("/tasks", json={"title": "x", "estimate": 0}).status_code == 422
    assert test_client.post("/tasks", json={"title": "   ", "estimate": 10}).status_code == 422
    assert test_client.post("/tasks", json={"estimate": 10}).status_code == 422
    assert test_client.post("/tasks", json={"title": "x", "estimate": 10, "tags": ["a"]}).status_code == 422


def test_list_tasks_in_creation_order_with_optional_chunks(client) -> None:
    test_client, _, _ = client
    for title, estimate in [("Write report", 120), ("Email client", 30)]:
        test_client.post("/tasks", json={"title": title, "estimate": estimate})
    test_client.post("/chunk")

    with_chunks = test_client.get("/tasks").json()
    without_chunks = test_client.get("/tasks", params={"include_chunks": "false"}).json()

    assert [task["title"] for task in with_chunks] == ["Write report", "Email client"]
    assert [chunk["title"] for chunk in with_chunks[0]["chunks"]] == [
        "Write report - Part 1",
        "Write report - Part 2",
    ]
    assert all(task["chunks"] is None for task in without_chunks)


def test_list_is_empty_without_tasks(client) -> None:
    test_client, _, _ = client
    response = test_client.get("/tasks")

    assert response.status_code == 200
    assert response.json() == []


def test_request_validation_uses_the_error_payload(client) -> None:
    test_client, _, _ = client
    response = test_client.post("/tasks", json={"title": "Write report", "estimate": 0})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["detail"] == "Request validation failed"
    assert body["request_id"] == response.headers["X-Request-Id"]
    assert body["details"][0]["loc"] == ["body", "estimate"]


def test_dependency_lookup_failure_is_a_persistence_error(client, monkeypatch) -> None:
    test_client, _, _ = client

    def broken_get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "get", broken_get)
    response = test_client.post(
        "/tasks",
        json={"title": "Write report", "estimate": 120, "dependsOn": str(uuid4())},
    )

    assert response.status_code == 500
    assert response.json()["error"] == "persistence_error"
