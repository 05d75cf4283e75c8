"""Tests for Pydantic input validation models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.errors import InvalidRequest
from core.services.taxonomy import Equipment, MuscleGroup
from core.validators import AlternativeCriteria, GenerationRequest, coerce_model


# --- GenerationRequest ---

def test_valid_generation_request():
    req = GenerationRequest(goal="strength", level="beginner", duration_minutes=30)
    assert req.equipment == [Equipment.BODYWEIGHT]
    assert req.target_muscles == []
    assert req.available_equipment == frozenset({Equipment.BODYWEIGHT})


def test_generation_request_duration_bounds():
    with pytest.raises(ValidationError):
        GenerationRequest(goal="strength", level="beginner", duration_minutes=9)
    with pytest.raises(ValidationError):
        GenerationRequest(goal="strength", level="beginner", duration_minutes=181)
    GenerationRequest(goal="strength", level="beginner", duration_minutes=180)


def test_generation_request_normalizes_lists():
    req = GenerationRequest(
        goal="hypertrophy",
        level="advanced",
        duration_minutes=60,
        equipment=["dumbbell", "barbell", "dumbbell"],
        target_muscles=["glutes", "chest", "glutes"],
        exclude_exercises=[" push-up ", "", "Plank", "push-up"],
        preferences="  quiet   apartment  ",
    )
    assert req.equipment == [Equipment.BARBELL, Equipment.DUMBBELL]
    assert req.target_muscles == [MuscleGroup.CHEST, MuscleGroup.GLUTES]
    assert req.exclude_exercises == ["Plank", "push-up"]
    assert req.preferences == "quiet apartment"
    assert Equipment.BODYWEIGHT in req.available_equipment


def test_generation_request_rejects_unknown_vocabulary():
    with pytest.raises(ValidationError):
        GenerationRequest(goal="strength", level="beginner", duration_minutes=30, equipment=["trampoline"])
    with pytest.raises(ValidationError):
        GenerationRequest(goal="flying", level="beginner", duration_minutes=30)


def test_generation_request_is_frozen():
    req = GenerationRequest(goal="strength", level="beginner", duration_minutes=30)
    with pytest.raises(ValidationError):
        req.duration_minutes = 40


# --- AlternativeCriteria ---

def test_alternative_criteria_defaults():
    criteria = AlternativeCriteria()
    assert criteria.limit == 5
    assert criteria.available_equipment is None


def test_alternative_criteria_empty_equipment_means_bodyweight():
    assert AlternativeCriteria(equipment=[]).available_equipment == frozenset({Equipment.BODYWEIGHT})


def test_alternative_criteria_limit_bounds():
    with pytest.raises(ValidationError):
        AlternativeCriteria(limit=0)
    with pytest.raises(ValidationError):
        AlternativeCriteria(limit=21)


# --- coerce_model ---

def test_coerce_model_passes_instances_through():
    req = GenerationRequest(goal="strength", level="beginner", duration_minutes=30)
    assert coerce_model(GenerationRequest, req) is req


def test_coerce_model_reports_fields():
    with pytest.raises(InvalidRequest) as exc_info:
        coerce_model(GenerationRequest, {"goal": "strength", "level": "beginner", "duration_minutes": 5}, what="workout request")
    assert str(exc_info.value) == "Invalid workout request"
    assert [e["field"] for e in exc_info.value.errors] == ["duration_minutes"]
