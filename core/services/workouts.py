"""Workout plans and logged workout sessions.

Plans are immutable once assembled. Sessions accept sets while in progress
and are frozen on completion or cancellation; their metrics are always
recomputed from the logged sets rather than stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from core.errors import InvalidRequest
from core.services.taxonomy import Exercise, ExerciseIndex

SET_SETUP_SECONDS = 15
TRANSITION_SECONDS = 60
# Calorie estimate for exercises that miss the taxonomy: per kg of volume.
VOLUME_CALORIE_FACTOR = 0.1

SETS_RANGE = (1, 10)
REPS_RANGE = (1, 60)
REST_RANGE = (30, 1000)
DURATION_TOLERANCE = 0.20


def exercise_count_range(duration_minutes: int) -> tuple[int, int]:
    """Sane (min, max) number of exercises for a session of the given length."""
    low = max(1, min(duration_minutes // 15, 8))
    high = max(3, min(duration_minutes // 5, 15))
    return low, high


def duration_bounds_seconds(duration_minutes: int) -> tuple[float, float]:
    target = duration_minutes * 60.0
    return target * (1 - DURATION_TOLERANCE), target * (1 + DURATION_TOLERANCE)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlannedExercise:
    exercise_id: str
    name: str
    sets: int
    reps: int
    rest_seconds: int
    notes: str = ""


@dataclass(frozen=True)
class WorkoutPlan:
    name: str
    exercises: tuple[PlannedExercise, ...]
    estimated_duration_minutes: int
    estimated_calories: int
    rationale: str = ""
    warmup: str = ""
    cooldown: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "exercises": [
                {
                    "exercise_id": p.exercise_id,
                    "name": p.name,
                    "sets": p.sets,
                    "reps": p.reps,
                    "rest_seconds": p.rest_seconds,
                    "notes": p.notes,
                }
                for p in self.exercises
            ],
            "estimated_duration_minutes": self.estimated_duration_minutes,
            "estimated_calories": self.estimated_calories,
            "rationale": self.rationale,
            "warmup": self.warmup,
            "cooldown": self.cooldown,
        }


def estimate_exercise_seconds(planned: PlannedExercise, exercise: Optional[Exercise]) -> float:
    """Working time plus rest between sets for one planned exercise."""
    sec_per_rep = exercise.seconds_per_rep if exercise else 3.0
    work = planned.sets * (planned.reps * sec_per_rep + SET_SETUP_SECONDS)
    rest = max(0, planned.sets - 1) * planned.rest_seconds
    return work + rest


def estimate_plan_seconds(exercises: tuple[PlannedExercise, ...] | list[PlannedExercise], index: ExerciseIndex) -> float:
    if not exercises:
        return 0.0
    total = sum(estimate_exercise_seconds(p, index.find(p.exercise_id)) for p in exercises)
    return total + TRANSITION_SECONDS * (len(exercises) - 1)


def estimate_plan_calories(exercises: tuple[PlannedExercise, ...] | list[PlannedExercise], index: ExerciseIndex) -> float:
    total = 0.0
    for p in exercises:
        ex = index.find(p.exercise_id)
        if ex is None:
            continue
        work_minutes = p.sets * p.reps * ex.seconds_per_rep / 60.0
        total += ex.calories_per_rep * p.reps * p.sets + ex.calories_per_minute * work_minutes
    return total


def assemble_plan(
    name: str,
    exercises: list[PlannedExercise],
    index: ExerciseIndex,
    rationale: str = "",
    warmup: str = "",
    cooldown: str = "",
) -> WorkoutPlan:
    """Freeze a list of planned exercises into a plan with derived estimates."""
    items = tuple(exercises)
    return WorkoutPlan(
        name=name,
        exercises=items,
        estimated_duration_minutes=int(round(estimate_plan_seconds(items, index) / 60.0)),
        estimated_calories=int(round(estimate_plan_calories(items, index))),
        rationale=rationale,
        warmup=warmup,
        cooldown=cooldown,
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CompletedSet:
    weight: float
    reps: int
    completed_at: datetime
    rpe: Optional[float] = None

    @property
    def volume(self) -> float:
        return self.weight * self.reps


@dataclass
class ExerciseEntry:
    exercise_id: str
    sets: list[CompletedSet] = field(default_factory=list)


@dataclass(frozen=True)
class SessionMetrics:
    total_volume: float
    total_sets: int
    total_reps: int
    calories: int
    average_rpe: Optional[float]
    duration_seconds: Optional[int]


@dataclass
class WorkoutSession:
    id: str
    user_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: SessionStatus = SessionStatus.IN_PROGRESS
    exercises: list[ExerciseEntry] = field(default_factory=list)
    name: str = ""

    @property
    def finalized(self) -> bool:
        return self.status is not SessionStatus.IN_PROGRESS

    def log_set(
        self,
        exercise_id: str,
        weight: float,
        reps: int,
        rpe: Optional[float] = None,
        completed_at: Optional[datetime] = None,
    ) -> CompletedSet:
        if self.finalized:
            raise InvalidRequest(f"Session {self.id} is {self.status.value}; sets can no longer be logged")
        if reps < 0 or weight < 0:
            raise InvalidRequest("weight and reps must be non-negative")
        if rpe is not None and not 1 <= rpe <= 10:
            raise InvalidRequest("rpe must be between 1 and 10")
        logged = CompletedSet(
            weight=float(weight),
            reps=int(reps),
            completed_at=completed_at or datetime.now(timezone.utc),
            rpe=rpe,
        )
        entry = next((e for e in self.exercises if e.exercise_id == exercise_id), None)
        if entry is None:
            entry = ExerciseEntry(exercise_id=exercise_id)
            self.exercises.append(entry)
        entry.sets.append(logged)
        return logged

    def complete(self, ended_at: Optional[datetime] = None) -> None:
        self._finalize(SessionStatus.COMPLETED, ended_at)

    def cancel(self, ended_at: Optional[datetime] = None) -> None:
        self._finalize(SessionStatus.CANCELLED, ended_at)

    def _finalize(self, status: SessionStatus, ended_at: Optional[datetime]) -> None:
        if self.finalized:
            raise InvalidRequest(f"Session {self.id} is already {self.status.value}")
        self.status = status
        self.ended_at = ended_at or datetime.now(timezone.utc)

    def metrics(self, index: Optional[ExerciseIndex] = None) -> SessionMetrics:
        return session_metrics(self, index)


def session_metrics(session: WorkoutSession, index: Optional[ExerciseIndex] = None) -> SessionMetrics:
    """Derive volume, calories and average RPE from the logged sets."""
    volume = 0.0
    sets = 0
    reps = 0
    calories = 0.0
    rpes: list[float] = []
    for entry in session.exercises:
        ex = index.find(entry.exercise_id) if index is not None else None
        for s in entry.sets:
            volume += s.volume
            sets += 1
            reps += s.reps
            if s.rpe is not None:
                rpes.append(float(s.rpe))
            if ex is not None:
                calories += ex.calories_per_rep * s.reps + ex.calories_per_minute * s.reps * ex.seconds_per_rep / 60.0
            else:
                calories += s.volume * VOLUME_CALORIE_FACTOR

    duration = None
    if session.ended_at is not None:
        duration = max(0, int((session.ended_at - session.started_at).total_seconds()))

    return SessionMetrics(
        total_volume=round(volume, 2),
        total_sets=sets,
        total_reps=reps,
        calories=int(round(calories)),
        average_rpe=round(sum(rpes) / len(rpes), 2) if rpes else None,
        duration_seconds=duration,
    )
