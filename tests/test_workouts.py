"""Tests for plan estimators and the workout session lifecycle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import InvalidRequest
from core.services.exercise_catalog import default_index
from core.services.workouts import (
    PlannedExercise,
    SessionStatus,
    WorkoutSession,
    assemble_plan,
    duration_bounds_seconds,
    estimate_plan_seconds,
    exercise_count_range,
)

T0 = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def _make_session(session_id: str = "s1") -> WorkoutSession:
    return WorkoutSession(id=session_id, user_id="u1", started_at=T0)


# --- Plans ---

def test_exercise_count_range():
    assert exercise_count_range(10) == (1, 3)
    assert exercise_count_range(60) == (4, 12)
    assert exercise_count_range(180) == (8, 15)


def test_duration_bounds():
    assert duration_bounds_seconds(60) == pytest.approx((2880.0, 4320.0))


def test_estimate_plan_seconds_counts_rest_and_transitions():
    index = default_index()
    push_up = PlannedExercise("push-up", "Push-ups", sets=3, reps=15, rest_seconds=45)
    # 3 x (15 reps x 2s + 15s setup) + 2 rests of 45s
    assert estimate_plan_seconds([push_up], index) == pytest.approx(225.0)
    assert estimate_plan_seconds([push_up, push_up], index) == pytest.approx(510.0)
    assert estimate_plan_seconds([], index) == 0.0


def test_assemble_plan_derives_estimates():
    index = default_index()
    plan = assemble_plan(
        "Quick Push",
        [PlannedExercise("push-up", "Push-ups", sets=3, reps=15, rest_seconds=45)],
        index,
        rationale="Short upper-body session.",
    )
    assert plan.estimated_duration_minutes == 4
    assert plan.estimated_calories > 0
    data = plan.to_dict()
    assert data["exercises"][0]["exercise_id"] == "push-up"
    assert data["rationale"] == "Short upper-body session."


# --- Sessions ---

def test_log_set_groups_by_exercise():
    session = _make_session()
    session.log_set("push-up", 0, 15, completed_at=T0 + timedelta(minutes=1))
    session.log_set("push-up", 0, 12, completed_at=T0 + timedelta(minutes=3))
    session.log_set("goblet-squat", 20, 10, rpe=7, completed_at=T0 + timedelta(minutes=6))
    assert [e.exercise_id for e in session.exercises] == ["push-up", "goblet-squat"]
    assert len(session.exercises[0].sets) == 2


def test_metrics_are_recomputed_from_sets():
    index = default_index()
    session = _make_session()
    session.log_set("goblet-squat", 20, 10, rpe=7, completed_at=T0 + timedelta(minutes=2))
    session.log_set("goblet-squat", 22.5, 8, rpe=8, completed_at=T0 + timedelta(minutes=5))
    session.complete(ended_at=T0 + timedelta(minutes=30))

    metrics = session.metrics(index)
    assert metrics.total_volume == pytest.approx(380.0)
    assert metrics.total_sets == 2
    assert metrics.total_reps == 18
    assert metrics.average_rpe == pytest.approx(7.5)
    assert metrics.duration_seconds == 1800
    assert metrics.calories > 0


def test_metrics_follow_sets_logged_after_a_read():
    session = _make_session()
    session.log_set("push-up", 0, 10, completed_at=T0 + timedelta(minutes=1))
    assert session.metrics().total_reps == 10
    session.log_set("goblet-squat", 20, 10, completed_at=T0 + timedelta(minutes=4))
    metrics = session.metrics()
    assert metrics.total_reps == 20
    assert metrics.total_sets == 2
    assert metrics.total_volume == pytest.approx(200.0)


def test_finalized_session_rejects_sets():
    session = _make_session()
    session.log_set("push-up", 0, 10, completed_at=T0)
    session.complete(ended_at=T0 + timedelta(minutes=10))
    assert session.status is SessionStatus.COMPLETED
    with pytest.raises(InvalidRequest):
        session.log_set("push-up", 0, 10)
    with pytest.raises(InvalidRequest):
        session.cancel()


def test_cancel_stamps_end_time():
    session = _make_session()
    session.cancel(ended_at=T0 + timedelta(minutes=1))
    assert session.status is SessionStatus.CANCELLED
    assert session.ended_at == T0 + timedelta(minutes=1)


def test_log_set_validates_values():
    session = _make_session()
    with pytest.raises(InvalidRequest):
        session.log_set("push-up", -5, 10)
    with pytest.raises(InvalidRequest):
        session.log_set("push-up", 0, 10, rpe=11)
