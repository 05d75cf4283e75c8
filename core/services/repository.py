"""Persistence collaborator for the training core.

The core depends only on the ``WorkoutRepository`` protocol. The SQLAlchemy
implementation maps ORM rows to the immutable core types and only ever
returns completed sessions, ordered by ``(started_at, id)``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, ContextManager, Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from core.db import session_scope
from core.errors import InvalidRequest, TaxonomyLookupMiss
from core.models import ExerciseRow, SessionExerciseRow, SessionSetRow, WorkoutSessionRow
from core.services.taxonomy import Exercise, ExerciseFilter, ExerciseIndex, parse_exercise
from core.services.workouts import CompletedSet, ExerciseEntry, SessionStatus, WorkoutSession

logger = logging.getLogger(__name__)


class WorkoutRepository(Protocol):
    def list_sessions(
        self, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[WorkoutSession]: ...

    def get_exercise(self, exercise_id: str) -> Exercise: ...

    def list_exercises(self, criteria: Optional[ExerciseFilter] = None) -> list[Exercise]: ...


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _to_session(row: WorkoutSessionRow) -> WorkoutSession:
    return WorkoutSession(
        id=row.id,
        user_id=row.user_id,
        name=row.name or "",
        started_at=_aware(row.started_at),
        ended_at=_aware(row.ended_at),
        status=SessionStatus(row.status),
        exercises=[
            ExerciseEntry(
                exercise_id=e.exercise_id,
                sets=[
                    CompletedSet(weight=s.weight, reps=s.reps, completed_at=_aware(s.completed_at), rpe=s.rpe)
                    for s in e.sets
                ],
            )
            for e in row.exercises
        ],
    )


class SqlWorkoutRepository:
    """SQLAlchemy-backed ``WorkoutRepository``."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] = session_scope):
        self._session_scope = session_factory

    # -- sessions --

    def list_sessions(
        self, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[WorkoutSession]:
        stmt = (
            select(WorkoutSessionRow)
            .where(WorkoutSessionRow.user_id == user_id)
            .where(WorkoutSessionRow.status == SessionStatus.COMPLETED.value)
            .options(selectinload(WorkoutSessionRow.exercises).selectinload(SessionExerciseRow.sets))
            .order_by(WorkoutSessionRow.started_at, WorkoutSessionRow.id)
        )
        if start is not None:
            stmt = stmt.where(WorkoutSessionRow.started_at >= _naive_utc(start))
        if end is not None:
            stmt = stmt.where(WorkoutSessionRow.started_at < _naive_utc(end))
        with self._session_scope() as s:
            rows = s.execute(stmt).scalars().unique().all()
            return [_to_session(r) for r in rows]

    def save_session(self, session: WorkoutSession) -> None:
        """Insert or replace a session. Only finalized sessions are stored immutably."""
        with self._session_scope() as s:
            existing = s.get(WorkoutSessionRow, session.id)
            if existing is not None:
                if existing.status != SessionStatus.IN_PROGRESS.value:
                    raise InvalidRequest(f"Session {session.id} is finalized and cannot be rewritten")
                s.delete(existing)
                s.flush()
            row = WorkoutSessionRow(
                id=session.id,
                user_id=session.user_id,
                name=session.name,
                status=session.status.value,
                started_at=_naive_utc(session.started_at),
                ended_at=_naive_utc(session.ended_at) if session.ended_at else None,
            )
            for position, entry in enumerate(session.exercises):
                ex_row = SessionExerciseRow(exercise_id=entry.exercise_id, position=position)
                ex_row.sets = [
                    SessionSetRow(
                        position=i,
                        weight=cs.weight,
                        reps=cs.reps,
                        rpe=cs.rpe,
                        completed_at=_naive_utc(cs.completed_at),
                    )
                    for i, cs in enumerate(entry.sets)
                ]
                row.exercises.append(ex_row)
            s.add(row)

    # -- exercises --

    def _exercises(self) -> list[Exercise]:
        with self._session_scope() as s:
            rows = s.execute(select(ExerciseRow).order_by(ExerciseRow.name, ExerciseRow.id)).scalars().all()
            records = [r.to_record() for r in rows]
        out: list[Exercise] = []
        for record in records:
            try:
                out.append(parse_exercise(record))
            except InvalidRequest as exc:
                logger.warning("Skipping invalid exercise row %s: %s", record.get("id"), exc.errors)
        return out

    def get_exercise(self, exercise_id: str) -> Exercise:
        with self._session_scope() as s:
            row = s.get(ExerciseRow, exercise_id)
            record = row.to_record() if row is not None else None
        if record is None:
            raise TaxonomyLookupMiss(exercise_id)
        return parse_exercise(record)

    def list_exercises(self, criteria: Optional[ExerciseFilter] = None) -> list[Exercise]:
        return ExerciseIndex(self._exercises()).filter(criteria)

    def save_exercises(self, records: Iterable[dict]) -> int:
        """Upsert raw exercise records; every record is validated first."""
        exercises = [parse_exercise(r) for r in records]
        with self._session_scope() as s:
            for ex in exercises:
                s.merge(
                    ExerciseRow(
                        id=ex.id,
                        name=ex.name,
                        primary_muscles=sorted(m.value for m in ex.primary_muscles),
                        secondary_muscles=sorted(m.value for m in ex.secondary_muscles),
                        equipment=sorted(e.value for e in ex.equipment),
                        difficulty=ex.difficulty.value,
                        mechanics=ex.mechanics.value,
                        types=sorted(t.value for t in ex.types),
                        movement_pattern=ex.movement_pattern.value if ex.movement_pattern else None,
                        default_sets=ex.default_sets,
                        default_reps=ex.default_reps,
                        default_rest_seconds=ex.default_rest_seconds,
                        calories_per_minute=ex.calories_per_minute,
                        calories_per_rep=ex.calories_per_rep,
                        seconds_per_rep=ex.seconds_per_rep,
                    )
                )
        return len(exercises)

    def load_index(self) -> Optional[ExerciseIndex]:
        """Index over stored exercises, or None when the table is empty."""
        exercises = self._exercises()
        return ExerciseIndex(exercises) if exercises else None
