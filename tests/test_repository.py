"""Tests for the SQLAlchemy workout repository against a throwaway SQLite file."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.config import get_settings
from core.db import create_schema, reset_engine
from core.errors import InvalidRequest, TaxonomyLookupMiss
from core.services.exercise_catalog import EXERCISE_CATALOG
from core.services.repository import SqlWorkoutRepository
from core.services.taxonomy import ExerciseFilter
from core.services.workouts import SessionStatus, WorkoutSession

DAY = datetime(2026, 3, 2, 18, tzinfo=timezone.utc)


@pytest.fixture
def repo(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path}/repo.db")
    get_settings.cache_clear()
    reset_engine()
    create_schema()
    yield SqlWorkoutRepository()
    reset_engine()
    get_settings.cache_clear()


def _make_session(session_id: str, started_at: datetime, user_id: str = "u1", finish: bool = True) -> WorkoutSession:
    session = WorkoutSession(id=session_id, user_id=user_id, started_at=started_at, name=f"Session {session_id}")
    session.log_set("barbell-squat", 100, 5, rpe=8, completed_at=started_at + timedelta(minutes=5))
    session.log_set("barbell-squat", 100, 5, completed_at=started_at + timedelta(minutes=8))
    session.log_set("push-up", 0, 15, completed_at=started_at + timedelta(minutes=12))
    if finish:
        session.complete(ended_at=started_at + timedelta(minutes=45))
    return session


# --- Sessions ---

def test_completed_sessions_round_trip_in_order(repo):
    repo.save_session(_make_session("b", DAY + timedelta(days=1)))
    repo.save_session(_make_session("a", DAY))
    repo.save_session(_make_session("other", DAY, user_id="u2"))

    sessions = repo.list_sessions("u1")
    assert [s.id for s in sessions] == ["a", "b"]
    first = sessions[0]
    assert first.status is SessionStatus.COMPLETED
    assert first.started_at == DAY
    assert first.started_at.tzinfo is not None
    assert [e.exercise_id for e in first.exercises] == ["barbell-squat", "push-up"]
    assert [s.reps for s in first.exercises[0].sets] == [5, 5]
    assert first.exercises[0].sets[0].rpe == 8
    assert first.metrics().total_volume == 1000


def test_time_window_filters_sessions(repo):
    for i in range(3):
        repo.save_session(_make_session(f"s{i}", DAY + timedelta(days=i)))
    window = repo.list_sessions("u1", start=DAY + timedelta(days=1), end=DAY + timedelta(days=2))
    assert [s.id for s in window] == ["s1"]


def test_unfinished_and_cancelled_sessions_are_not_listed(repo):
    repo.save_session(_make_session("open", DAY, finish=False))
    cancelled = _make_session("gone", DAY + timedelta(hours=2), finish=False)
    cancelled.cancel(ended_at=DAY + timedelta(hours=3))
    repo.save_session(cancelled)
    assert repo.list_sessions("u1") == []


def test_in_progress_session_can_be_replaced_but_finalized_cannot(repo):
    session = _make_session("s1", DAY, finish=False)
    repo.save_session(session)
    session.complete(ended_at=DAY + timedelta(minutes=50))
    repo.save_session(session)
    assert [s.id for s in repo.list_sessions("u1")] == ["s1"]

    with pytest.raises(InvalidRequest):
        repo.save_session(session)


# --- Exercises ---

def test_empty_exercise_table_has_no_index(repo):
    assert repo.load_index() is None


def test_exercises_round_trip(repo):
    assert repo.save_exercises(EXERCISE_CATALOG) == len(EXERCISE_CATALOG)
    squat = repo.get_exercise("barbell-squat")
    assert squat.name == "Barbell Squat"
    index = repo.load_index()
    assert len(index) == len(EXERCISE_CATALOG)
    assert index.get_by_id("push-up") == repo.get_exercise("push-up")


def test_saving_exercises_twice_upserts(repo):
    repo.save_exercises(EXERCISE_CATALOG)
    repo.save_exercises(EXERCISE_CATALOG[:3])
    assert len(repo.load_index()) == len(EXERCISE_CATALOG)


def test_unknown_exercise_is_a_lookup_miss(repo):
    with pytest.raises(TaxonomyLookupMiss):
        repo.get_exercise("moon-walk")


def test_list_exercises_applies_filter(repo):
    repo.save_exercises(EXERCISE_CATALOG)
    bodyweight = repo.list_exercises(ExerciseFilter(available_equipment=frozenset()))
    assert bodyweight
    assert all(not ex.required_equipment for ex in bodyweight)
    assert len(repo.list_exercises()) == len(EXERCISE_CATALOG)


def test_invalid_exercise_records_are_rejected_before_writing(repo):
    with pytest.raises(InvalidRequest):
        repo.save_exercises([{"id": "bad", "name": "Bad", "primary_muscles": ["tail"], "equipment": []}])
    assert repo.load_index() is None


# --- Seeding ---

def test_seed_is_idempotent(repo):
    from db.seed import DEMO_HISTORY, DEMO_USER, seed

    seed(with_demo=True)
    seed(with_demo=True)
    assert len(repo.load_index()) == len(EXERCISE_CATALOG)
    sessions = repo.list_sessions(DEMO_USER)
    assert len(sessions) == len(DEMO_HISTORY)
    index = repo.load_index()
    assert all(e.exercise_id in index for s in sessions for e in s.exercises)
