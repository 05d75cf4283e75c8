from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_app_settings, get_generator, get_index, get_repository
from api.schemas import (
    AlternativesOut,
    AnalyticsOut,
    ErrorOut,
    GenerationMetricsOut,
    GenerationOut,
    GoalStatusIn,
    GoalStatusOut,
    HealthOut,
)
from core.config import Settings
from core.errors import InvalidRequest
from core.services.alternatives import enrich_reasons, suggest_alternatives
from core.services.analytics import compute_analytics
from core.services.generation import WorkoutGenerator
from core.services.goals import goal_insights, goal_metric_from_analytics, recompute_goal_status
from core.services.repository import WorkoutRepository
from core.services.taxonomy import Difficulty, Equipment, ExerciseIndex
from core.validators import AlternativeCriteria, AlternativeReason, GenerationRequest, Timeframe

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")


@router.get("/health", response_model=HealthOut, tags=["system"])
def health(
    index: Annotated[ExerciseIndex, Depends(get_index)],
    generator: Annotated[WorkoutGenerator, Depends(get_generator)],
    settings: Annotated[Settings, Depends(get_app_settings)],
):
    return HealthOut(status="ok", exercises=len(index), model_enabled=generator.client is not None, app_env=settings.app_env)


@router.post("/ai/workouts/generate", response_model=GenerationOut, responses={422: {"model": ErrorOut}}, tags=["ai"])
async def generate_workout(
    body: GenerationRequest,
    generator: Annotated[WorkoutGenerator, Depends(get_generator)],
):
    result = await generator.generate(body)
    logger.info(
        "workout_generated",
        extra={"ctx_source": result.source, "ctx_attempts": result.attempts, "ctx_cached": result.cached},
    )
    return result.to_dict()


@router.get("/ai/metrics", response_model=GenerationMetricsOut, tags=["ai"])
def generation_metrics(generator: Annotated[WorkoutGenerator, Depends(get_generator)]):
    data = generator.stats.snapshot()
    data["cache_entries"] = len(generator.cache)
    data["model_enabled"] = generator.client is not None
    return data


@router.get(
    "/exercises/{exercise_id}/alternatives",
    response_model=AlternativesOut,
    responses={404: {"model": ErrorOut}, 422: {"model": ErrorOut}},
    tags=["exercises"],
)
async def exercise_alternatives(
    exercise_id: str,
    index: Annotated[ExerciseIndex, Depends(get_index)],
    generator: Annotated[WorkoutGenerator, Depends(get_generator)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    equipment: Annotated[Optional[list[Equipment]], Query()] = None,
    difficulty: Optional[Difficulty] = None,
    reason: Optional[AlternativeReason] = None,
    limit: Annotated[Optional[int], Query(ge=1, le=20)] = None,
    enrich: bool = False,
):
    criteria = AlternativeCriteria(
        equipment=equipment,
        difficulty=difficulty,
        reason=reason,
        limit=limit or settings.alternatives_limit,
    )
    result = suggest_alternatives(exercise_id, index, criteria)
    if enrich:
        result = await enrich_reasons(result, generator.client, generator.options, criteria)
    return result.to_dict()


@router.get("/users/{user_id}/analytics", response_model=AnalyticsOut, tags=["analytics"])
def user_analytics(
    user_id: str,
    index: Annotated[ExerciseIndex, Depends(get_index)],
    repository: Annotated[WorkoutRepository, Depends(get_repository)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    timeframe: Timeframe = Timeframe.MONTH,
):
    sessions = repository.list_sessions(user_id)
    analytics = compute_analytics(user_id, sessions, timeframe, index=index, settings=settings)
    return analytics.to_dict()


@router.post("/goals/status", response_model=GoalStatusOut, responses={422: {"model": ErrorOut}}, tags=["goals"])
def goal_status(
    body: GoalStatusIn,
    index: Annotated[ExerciseIndex, Depends(get_index)],
    repository: Annotated[WorkoutRepository, Depends(get_repository)],
    settings: Annotated[Settings, Depends(get_app_settings)],
):
    goal = body.goal.to_goal()
    now = body.now or datetime.now(timezone.utc)
    value = body.current_value
    value_source = "request"
    if value is None:
        sessions = repository.list_sessions(goal.user_id)
        analytics = compute_analytics(goal.user_id, sessions, body.timeframe, now=now, index=index, settings=settings)
        value = goal_metric_from_analytics(goal, analytics)
        value_source = "analytics"
        if value is None:
            raise InvalidRequest(
                "current_value is required for this goal",
                [{"field": "current_value", "message": f"analytics cannot supply a value for {goal.type.value} goals"}],
            )

    update = recompute_goal_status(goal, value, now)
    if update.newly_fired:
        logger.info(
            "goal_milestones_fired",
            extra={"ctx_goal_id": goal.id, "ctx_milestones": list(update.newly_fired)},
        )
    data = update.to_dict(now)
    data["insights"] = goal_insights(update.goal, now).to_dict()
    data["value_source"] = value_source
    return data
