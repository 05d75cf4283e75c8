"""Rule-based workout templates used when the model cannot deliver a valid plan.

Templates are keyed by goal and describe *slots* (a muscle focus plus
preferred mechanics/types) rather than fixed exercise names, so the same
template works for any equipment set. Level caps difficulty, duration sets
the exercise count, and the plan is then fitted to the requested length.
Constraints are relaxed step by step, so a plan is always produced as long
as the taxonomy holds at least one exercise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.services.prompt_builder import resolve_exclusions
from core.services.response_validator import fit_duration
from core.services.taxonomy import (
    Difficulty,
    Exercise,
    ExerciseFilter,
    ExerciseIndex,
    ExerciseType,
    Mechanics,
    MovementPattern,
    MuscleGroup,
)
from core.services.workouts import (
    REPS_RANGE,
    REST_RANGE,
    SET_SETUP_SECONDS,
    SETS_RANGE,
    TRANSITION_SECONDS,
    PlannedExercise,
    WorkoutPlan,
    assemble_plan,
    exercise_count_range,
)
from core.validators import GenerationRequest, WorkoutGoal

logger = logging.getLogger(__name__)

M = MuscleGroup


@dataclass(frozen=True)
class Slot:
    muscles: frozenset[MuscleGroup]
    mechanics: Optional[Mechanics] = None
    types: frozenset[ExerciseType] = frozenset()
    note: str = ""


@dataclass(frozen=True)
class Template:
    name: str
    sets: int
    reps: int
    rest_seconds: int
    slots: tuple[Slot, ...]
    warmup: str
    cooldown: str


def _slot(muscles, mechanics=None, types=(), note=""):
    return Slot(frozenset(muscles), mechanics, frozenset(types), note)


TEMPLATES: dict[WorkoutGoal, Template] = {
    WorkoutGoal.STRENGTH: Template(
        name="Strength Training",
        sets=4,
        reps=6,
        rest_seconds=120,
        slots=(
            _slot([M.QUADRICEPS, M.GLUTES], Mechanics.COMPOUND, [ExerciseType.POWERLIFTING], "Brace and go deep"),
            _slot([M.CHEST], Mechanics.COMPOUND, [ExerciseType.POWERLIFTING], "Control the descent"),
            _slot([M.HAMSTRINGS, M.LOWER_BACK], Mechanics.COMPOUND, [ExerciseType.POWERLIFTING], "Keep a neutral spine"),
            _slot([M.SHOULDERS], Mechanics.COMPOUND, note="Squeeze glutes, press overhead"),
            _slot([M.BACK, M.LATS], Mechanics.COMPOUND, note="Pull to the lower chest"),
            _slot([M.CORE], note="Breathe behind the brace"),
        ),
        warmup="5 minutes of light cardio, then two ramp-up sets of the first lift.",
        cooldown="Hip flexor, chest and hamstring stretches, 30 seconds each.",
    ),
    WorkoutGoal.HYPERTROPHY: Template(
        name="Muscle Building",
        sets=4,
        reps=10,
        rest_seconds=75,
        slots=(
            _slot([M.CHEST], Mechanics.COMPOUND, note="Full range of motion"),
            _slot([M.BACK, M.LATS], Mechanics.COMPOUND, note="Squeeze at the top"),
            _slot([M.QUADRICEPS, M.GLUTES], Mechanics.COMPOUND, note="Slow eccentric"),
            _slot([M.SHOULDERS], note="Controlled tempo"),
            _slot([M.BICEPS], Mechanics.ISOLATION, note="No swinging"),
            _slot([M.TRICEPS], Mechanics.ISOLATION, note="Full lockout"),
            _slot([M.HAMSTRINGS], note="Feel the stretch"),
            _slot([M.CORE]),
        ),
        warmup="5 minutes of light cardio and dynamic mobility for the trained muscles.",
        cooldown="Static stretching for every trained muscle group.",
    ),
    WorkoutGoal.ENDURANCE: Template(
        name="Endurance Circuit",
        sets=3,
        reps=15,
        rest_seconds=30,
        slots=(
            _slot([M.QUADRICEPS, M.GLUTES], Mechanics.COMPOUND, note="Keep moving"),
            _slot([M.CHEST], Mechanics.COMPOUND, note="Full range"),
            _slot([M.FULL_BODY], types=[ExerciseType.CARDIO], note="Steady pace"),
            _slot([M.GLUTES, M.HAMSTRINGS], note="Alternate legs"),
            _slot([M.CORE], note="Hold strong"),
            _slot([M.BACK, M.LATS], Mechanics.COMPOUND),
        ),
        warmup="5 minutes of easy cardio building to a moderate pace.",
        cooldown="5 minutes of walking followed by full-body stretching.",
    ),
    WorkoutGoal.WEIGHT_LOSS: Template(
        name="Fat-Burning Circuit",
        sets=3,
        reps=12,
        rest_seconds=30,
        slots=(
            _slot([M.FULL_BODY], types=[ExerciseType.CARDIO], note="Maximum effort"),
            _slot([M.QUADRICEPS, M.GLUTES], Mechanics.COMPOUND),
            _slot([M.CHEST], Mechanics.COMPOUND),
            _slot([M.CORE], types=[ExerciseType.CARDIO], note="Fast pace"),
            _slot([M.BACK, M.LATS], Mechanics.COMPOUND),
            _slot([M.FULL_BODY], types=[ExerciseType.PLYOMETRIC], note="Land softly"),
        ),
        warmup="5 minutes of jumping jacks, arm circles and leg swings.",
        cooldown="Walk until breathing settles, then stretch for 5 minutes.",
    ),
    WorkoutGoal.GENERAL_FITNESS: Template(
        name="Full-Body Fitness",
        sets=3,
        reps=10,
        rest_seconds=60,
        slots=(
            _slot([M.QUADRICEPS, M.GLUTES], Mechanics.COMPOUND),
            _slot([M.CHEST], Mechanics.COMPOUND),
            _slot([M.BACK, M.LATS], Mechanics.COMPOUND),
            _slot([M.HAMSTRINGS, M.GLUTES]),
            _slot([M.SHOULDERS]),
            _slot([M.CORE]),
        ),
        warmup="5 minutes of light cardio and dynamic stretches.",
        cooldown="Full-body static stretching.",
    ),
}

_LEVEL_SET_ADJUSTMENT = {
    Difficulty.BEGINNER: -1,
    Difficulty.INTERMEDIATE: 0,
    Difficulty.ADVANCED: 1,
    Difficulty.EXPERT: 1,
}

# Exercises prescribed in seconds or long counts keep their own rep default.
_TIMED_PATTERNS = {MovementPattern.ISOMETRIC, MovementPattern.LOCOMOTION, MovementPattern.CARRY}


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    return min(bounds[1], max(bounds[0], value))


def _candidate_pool(request: GenerationRequest, index: ExerciseIndex) -> list[Exercise]:
    """First non-empty pool from progressively relaxed criteria."""
    excluded, _ = resolve_exclusions(request, index)
    tiers = [
        ExerciseFilter(available_equipment=request.available_equipment, max_difficulty=request.level, exclude_ids=excluded),
        ExerciseFilter(available_equipment=request.available_equipment, exclude_ids=excluded),
        ExerciseFilter(max_difficulty=request.level, exclude_ids=excluded),
        ExerciseFilter(exclude_ids=excluded),
        ExerciseFilter(),
    ]
    for tier, criteria in enumerate(tiers):
        pool = index.filter(criteria)
        if pool:
            if tier:
                logger.warning("Fallback relaxed constraints to tier %d for goal=%s", tier, request.goal.value)
            return pool
    return []


def _slot_score(ex: Exercise, slot: Slot, targets: frozenset[MuscleGroup]) -> float:
    score = 3.0 * len(ex.primary_muscles & slot.muscles) + len(ex.secondary_muscles & slot.muscles)
    if slot.mechanics is not None and ex.mechanics is slot.mechanics:
        score += 1.0
    if slot.types and ex.types & slot.types:
        score += 1.0
    if targets:
        score += 2.0 * len(ex.primary_muscles & targets)
    return score


def _prescribe(ex: Exercise, template: Template, level: Difficulty, note: str) -> PlannedExercise:
    sets = _clamp(template.sets + _LEVEL_SET_ADJUSTMENT[level], (2, SETS_RANGE[1]))
    reps = ex.default_reps if ex.movement_pattern in _TIMED_PATTERNS else template.reps
    return PlannedExercise(
        exercise_id=ex.id,
        name=ex.name,
        sets=sets,
        reps=_clamp(reps, REPS_RANGE),
        rest_seconds=_clamp(template.rest_seconds, REST_RANGE),
        notes=note,
    )


def _target_count(request: GenerationRequest, template: Template) -> int:
    low, high = exercise_count_range(request.duration_minutes)
    sets = template.sets + _LEVEL_SET_ADJUSTMENT[request.level]
    per_exercise = sets * (template.reps * 3.0 + SET_SETUP_SECONDS) + (sets - 1) * template.rest_seconds
    count = int(round(request.duration_minutes * 60 / (per_exercise + TRANSITION_SECONDS)))
    return _clamp(count, (low, high))


def build_fallback_plan(request: GenerationRequest, index: ExerciseIndex) -> WorkoutPlan:
    """Deterministically build a plan for ``request`` from taxonomy data alone.

    Raises ValueError only when the taxonomy is empty.
    """
    template = TEMPLATES[request.goal]
    pool = _candidate_pool(request, index)
    if not pool:
        raise ValueError("Cannot build a fallback plan from an empty exercise taxonomy")

    targets = frozenset(request.target_muscles)
    count = min(_target_count(request, template), len(pool))
    chosen: list[PlannedExercise] = []
    used: set[str] = set()
    slot_i = 0
    while len(chosen) < count:
        slot = template.slots[slot_i % len(template.slots)]
        slot_i += 1
        remaining = [ex for ex in pool if ex.id not in used]
        best = sorted(remaining, key=lambda ex: (-_slot_score(ex, slot, targets), ex.name.lower(), ex.id))[0]
        used.add(best.id)
        chosen.append(_prescribe(best, template, request.level, slot.note))

    low, _ = exercise_count_range(request.duration_minutes)
    fitted = fit_duration(chosen, request.duration_minutes, index, min_count=min(low, len(chosen)))

    focus = ", ".join(m.value for m in request.target_muscles) or "full body"
    return assemble_plan(
        name=f"{template.name} ({request.duration_minutes} min)",
        exercises=fitted,
        index=index,
        rationale=(
            f"Rule-based {request.goal.value.replace('_', ' ')} session for a {request.level.value} athlete, "
            f"focus: {focus}, built only from exercises your equipment allows."
        ),
        warmup=template.warmup,
        cooldown=template.cooldown,
    )
