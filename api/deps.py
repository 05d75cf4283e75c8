from __future__ import annotations

from fastapi import Request

from core.config import Settings, get_settings
from core.services.generation import WorkoutGenerator
from core.services.repository import WorkoutRepository
from core.services.taxonomy import ExerciseIndex


def get_index(request: Request) -> ExerciseIndex:
    return request.app.state.index


def get_generator(request: Request) -> WorkoutGenerator:
    return request.app.state.generator


def get_repository(request: Request) -> WorkoutRepository:
    return request.app.state.repository


def get_app_settings() -> Settings:
    return get_settings()
