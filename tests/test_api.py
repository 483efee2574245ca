"""Tests for the HTTP surface, run against the in-memory model store."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from taskweave.api import main
from taskweave.config import settings as settings_module

CONTEXT = {
    "current_time": "2024-03-12T10:00:00",
    "energy": 85,
    "tasks": [
        {
            "id": "t1",
            "title": "Write quarterly report",
            "category": "Work",
            "duration": 45,
            "energy": "High",
            "created_at": "2024-03-11T10:00:00",
        }
    ],
}


@pytest.fixture
def client():
    main.configure(settings_module.TestingSettings(model_store_backend="memory", openai_api_key=None))
    return TestClient(main.app)


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "healthy"
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["model_store"] == "memory"
    assert health["calibration"] == "unavailable"


def test_suggestion(client):
    response = client.post("/users/alice/suggestion", json=CONTEXT)
    assert response.status_code == 200
    body = response.json()
    assert body["strategy"] == "Deep Flow"
    assert body["suggestion"]["task_id"] == "t1"
    assert body["suggestion"]["estimated_duration"] == 45


def test_suggestion_accepts_timezone_aware_timestamps(client):
    context = dict(CONTEXT, current_time="2024-03-12T10:00:00Z")
    context["tasks"] = [dict(CONTEXT["tasks"][0], created_at="2024-03-11T10:00:00+02:00",
                             due_date="2024-03-12T15:00:00+00:00")]
    response = client.post("/users/alice/suggestion", json=context)
    assert response.status_code == 200


def test_invalid_context_is_rejected(client):
    response = client.post("/users/alice/suggestion", json=dict(CONTEXT, energy=140))
    assert response.status_code == 422


def test_feedback_endpoints(client):
    completion = client.post("/users/alice/feedback/completion",
                             json={"context": CONTEXT, "strategy": "Deep Flow", "success": True})
    assert completion.json()["success"] is True

    rejection = client.post("/users/alice/feedback/rejection", json={"context": CONTEXT, "strategy": "Nope"})
    assert rejection.status_code == 200
    assert rejection.json()["success"] is False

    organic = client.post("/users/alice/feedback/organic", json={"task": CONTEXT["tasks"][0], "context": CONTEXT})
    assert organic.json()["message"] == "Credited 1 strategies"

    stats = client.get("/users/alice/model/stats").json()
    assert len(stats["arms"]) == 13
    assert stats["arms"]["0"]["evidence"] > 0


def test_calibration_unavailable_without_api_key(client):
    response = client.post("/users/alice/calibrate", json={"tasks": CONTEXT["tasks"]})
    assert response.status_code == 503


def test_recalibrate_from_history(client):
    history = dict(CONTEXT["tasks"][0], status="completed", completed_at="2024-03-11T12:00:00")
    response = client.post("/users/alice/recalibrate", json={
        "tasks": [history],
        "vitals": [{"id": "v1", "timestamp": "2024-03-11T08:00:00", "type": "mood", "value": 4}],
    })
    assert response.status_code == 200
    assert response.json()["processed"] == 1


def test_metrics(client):
    client.post("/users/alice/suggestion", json=CONTEXT)
    client.post("/users/bob/suggestion", json=CONTEXT)
    metrics = client.get("/metrics").json()
    assert metrics["total_suggestions"] == 2
    assert metrics["strategy_counts"] == {"Deep Flow": 2}


def test_context_keeps_the_callers_local_wall_clock():
    payload = main.ContextPayload(
        current_time="2024-03-12T18:00:00+09:00",
        energy=30,
        tasks=[{"id": "t2", "title": "Tidy inbox", "energy": "Low", "duration": 10,
                "created_at": "2024-03-12T08:00:00Z", "due_date": "2024-03-12T10:00:00Z"}],
    )
    ctx = payload.to_entity()
    assert ctx.current_time == datetime(2024, 3, 12, 18, 0)
    assert ctx.tasks[0].created_at == datetime(2024, 3, 12, 17, 0)
    assert ctx.tasks[0].due_date == datetime(2024, 3, 12, 19, 0)


def test_evening_in_the_callers_offset_enables_twilight_ritual(client):
    low = {"id": "t2", "title": "Tidy inbox", "category": "Personal", "duration": 10,
           "energy": "Low", "created_at": "2024-03-12T12:00:00+09:00"}
    context = {"current_time": "2024-03-12T18:00:00+09:00", "energy": 30, "tasks": [low]}

    organic = client.post("/users/carol/feedback/organic", json={"task": low, "context": context})
    assert organic.json()["message"] == "Credited 2 strategies"

    stats = client.get("/users/carol/model/stats").json()
    assert stats["arms"]["12"]["evidence"] > 0
    assert stats["arms"]["5"]["evidence"] > 0


def test_calibration_request_accepts_local_time(client):
    response = client.post("/users/alice/calibrate", json={
        "current_time": "2024-03-12T18:00:00+09:00", "tasks": CONTEXT["tasks"],
    })
    assert response.status_code == 503
