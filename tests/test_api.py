"""Tests for the FastAPI surface: routing, error mapping and request ids."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from core.config import get_settings
from core.db import reset_engine
from core.services.repository import SqlWorkoutRepository
from core.services.workouts import WorkoutSession


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path}/api.db")
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    get_settings.cache_clear()
    reset_engine()

    from api.main import create_app

    with TestClient(create_app()) as c:
        yield c
    reset_engine()
    get_settings.cache_clear()


def _seed_history(user_id: str = "u1") -> None:
    repo = SqlWorkoutRepository()
    for i, (weight, reps) in enumerate([(80, 5), (90, 3)]):
        start = datetime(2026, 1, 5 + i, 18, tzinfo=timezone.utc)
        session = WorkoutSession(id=f"{user_id}-s{i}", user_id=user_id, started_at=start)
        session.log_set("barbell-squat", weight, reps, completed_at=start + timedelta(minutes=5))
        session.complete(ended_at=start + timedelta(minutes=40))
        repo.save_session(session)


def _goal_payload(**overrides) -> dict:
    goal = {
        "id": "g1",
        "user_id": "u1",
        "type": "strength",
        "target_value": 120,
        "unit": "kg",
        "exercise_id": "barbell-squat",
        "created_at": "2026-01-01T00:00:00Z",
        "deadline": "2026-03-01T00:00:00Z",
    }
    goal.update(overrides)
    return goal


# --- System ---

def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["exercises"] == 47
    assert body["model_enabled"] is False
    assert body["app_env"] == "test"


def test_request_id_is_echoed_or_generated(client):
    r = client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    generated = client.get("/api/v1/health").headers["X-Request-ID"]
    assert generated and generated != "abc-123"


# --- Generation ---

def test_generate_without_model_uses_fallback(client):
    payload = {"goal": "strength", "level": "intermediate", "duration_minutes": 45, "equipment": ["dumbbell", "bench"]}
    r = client.post("/api/v1/ai/workouts/generate", json=payload)
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "fallback"
    assert body["attempts"] == 0
    assert body["plan"]["exercises"]
    assert 0 <= body["quality_score"] <= 100

    metrics = client.get("/api/v1/ai/metrics").json()
    assert metrics["requests"] == 1
    assert metrics["fallbacks"] == 1
    assert metrics["model_enabled"] is False


def test_generate_rejects_out_of_range_duration(client):
    r = client.post("/api/v1/ai/workouts/generate", json={"goal": "strength", "level": "beginner", "duration_minutes": 5})
    assert r.status_code == 422


# --- Alternatives ---

def test_alternatives_for_known_exercise(client):
    r = client.get(
        "/api/v1/exercises/barbell-bench-press/alternatives",
        params=[("equipment", "dumbbell"), ("equipment", "bench"), ("limit", "3")],
    )
    assert r.status_code == 200
    body = r.json()
    assert body["exercise"]["id"] == "barbell-bench-press"
    assert len(body["alternatives"]) == 3
    assert body["alternatives"][0]["id"] == "dumbbell-bench-press"
    assert body["enriched"] is False


def test_alternatives_for_unknown_exercise_is_404(client):
    r = client.get("/api/v1/exercises/moon-walk/alternatives")
    assert r.status_code == 404
    assert "moon-walk" in r.json()["detail"]


def test_alternatives_limit_is_bounded(client):
    assert client.get("/api/v1/exercises/push-up/alternatives?limit=50").status_code == 422


# --- Analytics ---

def test_analytics_for_seeded_user(client):
    _seed_history()
    r = client.get("/api/v1/users/u1/analytics", params={"timeframe": "all"})
    assert r.status_code == 200
    body = r.json()
    assert body["summary"]["total_sessions"] == 2
    assert body["summary"]["total_volume"] == pytest.approx(670.0)
    kinds = {(p["exercise_id"], p["kind"]) for p in body["personal_records"]}
    assert ("barbell-squat", "estimated_1rm") in kinds


def test_analytics_for_unknown_user_is_empty(client):
    body = client.get("/api/v1/users/nobody/analytics").json()
    assert body["summary"]["total_sessions"] == 0
    assert body["classification"] == "insufficient_data"


# --- Goals ---

def test_goal_status_with_explicit_value(client):
    payload = {"goal": _goal_payload(), "current_value": 60, "now": "2026-01-20T00:00:00Z"}
    r = client.post("/api/v1/goals/status", json=payload)
    assert r.status_code == 200
    body = r.json()
    assert body["progress_percent"] == pytest.approx(50.0)
    assert body["status"] == "on_track"
    assert body["newly_fired_milestones"] == [25, 50]
    assert body["value_source"] == "request"


def test_goal_status_from_analytics(client):
    _seed_history()
    r = client.post("/api/v1/goals/status", json={"goal": _goal_payload(), "now": "2026-01-20T00:00:00Z"})
    assert r.status_code == 200
    body = r.json()
    assert body["value_source"] == "analytics"
    assert body["goal"]["current_value"] == pytest.approx(95.29)
    assert body["status"] == "almost_there"
    assert body["newly_fired_milestones"] == [25, 50, 75]


def test_weight_goal_without_value_is_rejected(client):
    goal = _goal_payload(type="weight", target_value=75, start_value=80, exercise_id=None)
    r = client.post("/api/v1/goals/status", json={"goal": goal})
    assert r.status_code == 422
    assert r.json()["errors"][0]["field"] == "current_value"


def test_invalid_goal_is_rejected(client):
    r = client.post("/api/v1/goals/status", json={"goal": _goal_payload(target_value=0), "current_value": 1})
    assert r.status_code == 422
