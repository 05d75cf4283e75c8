from __future__ import annotations

from datetime import datetime as dt_datetime
from typing import Optional

from pydantic import BaseModel, Field

from core.services.goals import GoalRecord
from core.validators import Timeframe


class HealthOut(BaseModel):
    status: str
    exercises: int
    model_enabled: bool
    app_env: str


class ErrorItem(BaseModel):
    field: str
    message: str


class ErrorOut(BaseModel):
    detail: str
    errors: list[ErrorItem] = Field(default_factory=list)


# -- Generation --

class PlannedExerciseOut(BaseModel):
    exercise_id: str
    name: str
    sets: int
    reps: int
    rest_seconds: int
    notes: str = ""


class WorkoutPlanOut(BaseModel):
    name: str
    exercises: list[PlannedExerciseOut]
    estimated_duration_minutes: int
    estimated_calories: int
    rationale: str = ""
    warmup: str = ""
    cooldown: str = ""


class ViolationOut(BaseModel):
    code: str
    path: str
    message: str


class GenerationOut(BaseModel):
    plan: WorkoutPlanOut
    source: str
    cached: bool
    attempts: int
    repaired: bool
    quality_score: int
    violations: list[ViolationOut] = Field(default_factory=list)


class GenerationMetricsOut(BaseModel):
    requests: int
    model_successes: int
    repaired: int
    fallbacks: int
    cache_hits: int
    failed_attempts: int
    timeouts: int
    total_latency_ms: float
    average_latency_ms: float
    model_success_rate: float
    cache_entries: int
    model_enabled: bool


# -- Alternatives --

class SourceExerciseOut(BaseModel):
    id: str
    name: str
    difficulty: str
    equipment: list[str]
    primary_muscles: list[str]


class AlternativeOut(BaseModel):
    id: str
    name: str
    difficulty: str
    equipment: list[str]
    primary_muscles: list[str]
    secondary_muscles: list[str]
    similarity_score: float
    reason: str
    caveat: Optional[str] = None


class AlternativesOut(BaseModel):
    exercise: SourceExerciseOut
    alternatives: list[AlternativeOut]
    equipment_relaxed: bool
    enriched: bool
    empty: bool
    message: str


# -- Analytics --

class StreaksOut(BaseModel):
    current: int
    longest: int
    cadence: str
    last_active: Optional[str] = None


class PersonalRecordOut(BaseModel):
    exercise_id: str
    kind: str
    value: float
    achieved_at: str
    session_id: str
    previous_value: Optional[float] = None
    improvement: Optional[float] = None
    improvement_pct: Optional[float] = None


class VolumeBucketOut(BaseModel):
    label: str
    start: str
    volume: float
    sessions: int
    change_pct: Optional[float] = None
    complete: bool = True


class VolumeTrendOut(BaseModel):
    bucket: str
    buckets: list[VolumeBucketOut]
    change_pct: Optional[float] = None
    classification: str


class SummaryOut(BaseModel):
    total_sessions: int
    total_volume: float
    total_calories: int
    average_volume: float
    average_duration_minutes: float


class MuscleShareOut(BaseModel):
    muscle: str
    sets: int
    volume: float
    percent_of_sets: float


class AnalyticsOut(BaseModel):
    user_id: str
    timeframe: str
    summary: SummaryOut
    streaks: StreaksOut
    personal_records: list[PersonalRecordOut]
    pr_events: list[PersonalRecordOut]
    volume_trend: VolumeTrendOut
    classification: str
    weekday_frequency: dict[str, int]
    most_active_day: Optional[str] = None
    muscle_distribution: list[MuscleShareOut]
    skipped_sessions: list[str]


# -- Goals --

class GoalStatusIn(BaseModel):
    goal: GoalRecord
    current_value: Optional[float] = None
    now: Optional[dt_datetime] = None
    timeframe: Timeframe = Timeframe.ALL


class ProgressPointOut(BaseModel):
    at: str
    value: float


class MilestoneOut(BaseModel):
    threshold: int
    achieved: bool


class GoalOut(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    target_value: float
    unit: str
    start_value: float
    current_value: float
    deadline: Optional[str] = None
    exercise_id: Optional[str] = None
    progress_percent: float
    status: str
    milestones: list[MilestoneOut]
    history: list[ProgressPointOut] = Field(default_factory=list)


class GoalInsightsOut(BaseModel):
    days_remaining: Optional[int] = None
    velocity_pct_per_day: Optional[float] = None
    predicted_completion: Optional[str] = None
    on_pace: Optional[bool] = None


class GoalStatusOut(BaseModel):
    status: str
    progress_percent: float
    newly_fired_milestones: list[int]
    goal: GoalOut
    insights: GoalInsightsOut
    value_source: str
