"""Pydantic validation models for the training core's entry points."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors import InvalidRequest
from core.services.taxonomy import Difficulty, Equipment, MuscleGroup


class WorkoutGoal(str, Enum):
    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    ENDURANCE = "endurance"
    WEIGHT_LOSS = "weight_loss"
    GENERAL_FITNESS = "general_fitness"


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: WorkoutGoal
    level: Difficulty
    duration_minutes: int = Field(ge=10, le=180)
    equipment: list[Equipment] = Field(default_factory=lambda: [Equipment.BODYWEIGHT])
    target_muscles: list[MuscleGroup] = Field(default_factory=list)
    exclude_exercises: list[str] = Field(default_factory=list)
    preferences: str = Field(default="", max_length=500)
    user_id: Optional[str] = None

    @field_validator("equipment", "target_muscles")
    @classmethod
    def dedupe_vocab(cls, v):
        return sorted(set(v), key=lambda item: item.value)

    @field_validator("exclude_exercises")
    @classmethod
    def dedupe_exclusions(cls, v):
        return sorted({s.strip() for s in v if s and s.strip()})

    @field_validator("preferences")
    @classmethod
    def strip_preferences(cls, v):
        return " ".join(v.split())

    @property
    def available_equipment(self) -> frozenset[Equipment]:
        return frozenset(self.equipment) | {Equipment.BODYWEIGHT}


class AlternativeReason(str, Enum):
    EQUIPMENT = "equipment"
    INJURY = "injury"
    DIFFICULTY = "difficulty"
    PREFERENCE = "preference"
    OTHER = "other"


class AlternativeCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    equipment: Optional[list[Equipment]] = None
    difficulty: Optional[Difficulty] = None
    reason: Optional[AlternativeReason] = None
    limit: int = Field(default=5, ge=1, le=20)

    @property
    def available_equipment(self) -> Optional[frozenset[Equipment]]:
        if self.equipment is None:
            return None
        return frozenset(self.equipment) | {Equipment.BODYWEIGHT}


class Timeframe(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ALL = "all"


M = TypeVar("M", bound=BaseModel)


def coerce_model(model: type[M], data: Any, what: str = "request") -> M:
    """Return ``data`` as ``model``, converting pydantic failures to InvalidRequest."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidRequest.from_validation_error(exc, what=what) from exc
