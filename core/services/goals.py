"""Goal progress state machine.

A goal's status is never stored. It is derived on every read from the
progress percentage and the deadline::

    not_started -> just_started -> on_track -> almost_there -> completed

with ``failed`` reachable from any non-completed state once now > deadline.

Milestones (25/50/75/100 %) fire exactly once per goal: the goal carries the
set of thresholds already fired, so recomputing with the same inputs is a
no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from core.services.analytics import RecordKind, UserAnalytics
from core.validators import coerce_model

MILESTONES = (25, 50, 75, 100)


class GoalType(str, Enum):
    WEIGHT = "weight"
    STRENGTH = "strength"
    VOLUME = "volume"
    FREQUENCY = "frequency"
    ENDURANCE = "endurance"
    CUSTOM = "custom"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    JUST_STARTED = "just_started"
    ON_TRACK = "on_track"
    ALMOST_THERE = "almost_there"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressPoint:
    at: datetime
    value: float


@dataclass(frozen=True)
class Goal:
    id: str
    user_id: str
    type: GoalType
    target_value: float
    unit: str = ""
    start_value: float = 0.0
    current_value: float = 0.0
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None
    exercise_id: Optional[str] = None
    title: str = ""
    fired_milestones: frozenset[int] = frozenset()
    history: tuple[ProgressPoint, ...] = ()

    @property
    def decreasing(self) -> bool:
        """Goals whose target sits below the baseline, such as weight loss."""
        return self.target_value < self.start_value

    def progress_percent(self, value: Optional[float] = None) -> float:
        return progress_percent(self, self.current_value if value is None else value)

    def status_at(self, now: datetime) -> GoalStatus:
        return derive_status(self.progress_percent(), now, self.deadline)

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value,
            "title": self.title,
            "target_value": self.target_value,
            "unit": self.unit,
            "start_value": self.start_value,
            "current_value": self.current_value,
            "deadline": _utc(self.deadline).isoformat() if self.deadline else None,
            "exercise_id": self.exercise_id,
            "progress_percent": self.progress_percent(),
            "status": self.status_at(now).value,
            "milestones": [{"threshold": m, "achieved": m in self.fired_milestones} for m in MILESTONES],
            "history": [{"at": _utc(p.at).isoformat(), "value": p.value} for p in self.history],
        }


class ProgressPointRecord(BaseModel):
    at: datetime
    value: float


class GoalRecord(BaseModel):
    """Boundary validation for goals arriving from callers."""

    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    type: GoalType
    target_value: float
    unit: str = ""
    start_value: float = 0.0
    current_value: Optional[float] = None
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None
    exercise_id: Optional[str] = None
    title: str = Field(default="", max_length=200)
    fired_milestones: list[int] = Field(default_factory=list)
    history: list[ProgressPointRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_target(self):
        if self.target_value == self.start_value:
            raise ValueError("target_value must differ from start_value")
        if self.target_value > self.start_value and self.target_value <= 0:
            raise ValueError("target_value must be positive")
        bad = sorted(set(self.fired_milestones) - set(MILESTONES))
        if bad:
            raise ValueError(f"unknown milestone thresholds: {bad}")
        return self

    def to_goal(self) -> Goal:
        return Goal(
            id=self.id,
            user_id=self.user_id,
            type=self.type,
            target_value=self.target_value,
            unit=self.unit,
            start_value=self.start_value,
            current_value=self.start_value if self.current_value is None else self.current_value,
            deadline=self.deadline,
            created_at=self.created_at,
            exercise_id=self.exercise_id,
            title=self.title,
            fired_milestones=frozenset(self.fired_milestones),
            history=tuple(
                ProgressPoint(_utc(p.at), p.value) for p in sorted(self.history, key=lambda p: _utc(p.at))
            ),
        )


def parse_goal(data: dict | GoalRecord) -> Goal:
    """Validate raw goal data. Raises InvalidRequest."""
    return coerce_model(GoalRecord, data, what="goal").to_goal()


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def progress_percent(goal: Goal, value: float) -> float:
    """Progress towards ``goal`` at ``value``, clamped to [0, 100]."""
    if goal.decreasing:
        pct = (goal.start_value - value) / (goal.start_value - goal.target_value) * 100.0
    elif goal.target_value > 0:
        pct = value / goal.target_value * 100.0
    else:
        pct = 0.0
    return round(min(100.0, max(0.0, pct)), 2)


def derive_status(progress: float, now: datetime, deadline: Optional[datetime]) -> GoalStatus:
    if progress >= 100:
        return GoalStatus.COMPLETED
    if deadline is not None and _utc(now) > _utc(deadline):
        return GoalStatus.FAILED
    if progress <= 0:
        return GoalStatus.NOT_STARTED
    if progress < 25:
        return GoalStatus.JUST_STARTED
    if progress < 75:
        return GoalStatus.ON_TRACK
    return GoalStatus.ALMOST_THERE


@dataclass(frozen=True)
class StatusUpdate:
    status: GoalStatus
    progress_percent: float
    newly_fired: tuple[int, ...]
    goal: Goal

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        return {
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "newly_fired_milestones": list(self.newly_fired),
            "goal": self.goal.to_dict(now),
        }


def recompute_goal_status(goal: Goal, current_value: float, now: datetime) -> StatusUpdate:
    """Apply a new metric value to ``goal``.

    Returns the derived status, the milestones crossed for the first time,
    and the updated goal (new current value, fired set and history). The
    input goal is not modified.
    """
    progress = progress_percent(goal, current_value)
    status = derive_status(progress, now, goal.deadline)
    reached = {m for m in MILESTONES if progress >= m}
    newly = tuple(sorted(reached - goal.fired_milestones))

    history = goal.history
    if not history or history[-1].value != current_value:
        history = history + (ProgressPoint(_utc(now), float(current_value)),)

    updated = replace(
        goal,
        current_value=float(current_value),
        fired_milestones=goal.fired_milestones | frozenset(newly),
        history=history,
    )
    return StatusUpdate(status=status, progress_percent=progress, newly_fired=newly, goal=updated)


def goal_metric_from_analytics(goal: Goal, analytics: UserAnalytics) -> Optional[float]:
    """Current goal value implied by analytics, or None when analytics cannot supply it."""
    if goal.type is GoalType.STRENGTH and goal.exercise_id:
        best = analytics.best(goal.exercise_id, RecordKind.ESTIMATED_1RM)
        return best if best is not None else analytics.best(goal.exercise_id, RecordKind.MAX_WEIGHT)
    if goal.type is GoalType.ENDURANCE and goal.exercise_id:
        return analytics.best(goal.exercise_id, RecordKind.MAX_REPS)
    if goal.type is GoalType.VOLUME:
        return analytics.summary.total_volume
    if goal.type is GoalType.FREQUENCY:
        return float(analytics.summary.total_sessions)
    return None


@dataclass(frozen=True)
class GoalInsights:
    days_remaining: Optional[int]
    velocity_pct_per_day: Optional[float]
    predicted_completion: Optional[date]
    on_pace: Optional[bool]

    def to_dict(self) -> dict:
        return {
            "days_remaining": self.days_remaining,
            "velocity_pct_per_day": self.velocity_pct_per_day,
            "predicted_completion": self.predicted_completion.isoformat() if self.predicted_completion else None,
            "on_pace": self.on_pace,
        }


def goal_insights(goal: Goal, now: datetime) -> GoalInsights:
    """Days left, progress velocity from the recorded history, and a projected finish date."""
    now = _utc(now)
    days_remaining = max(0, (_utc(goal.deadline) - now).days) if goal.deadline else None

    points = sorted(goal.history, key=lambda p: _utc(p.at))
    velocity = None
    predicted = None
    if len(points) >= 2:
        span_days = (_utc(points[-1].at) - _utc(points[0].at)).total_seconds() / 86400.0
        if span_days > 0:
            gained = progress_percent(goal, points[-1].value) - progress_percent(goal, points[0].value)
            velocity = round(gained / span_days, 3)
    progress = goal.progress_percent()
    if progress >= 100:
        predicted = now.date()
    elif velocity and velocity > 0:
        predicted = (now + timedelta(days=(100.0 - progress) / velocity)).date()

    on_pace = None
    if goal.deadline is not None and predicted is not None:
        on_pace = predicted <= _utc(goal.deadline).date()
    elif goal.deadline is not None and progress < 100:
        on_pace = False if velocity is not None else None
    return GoalInsights(days_remaining, velocity, predicted, on_pace)
