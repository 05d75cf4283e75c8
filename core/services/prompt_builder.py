"""Deterministic prompt rendering for workout generation.

``build_prompt`` is a pure function of the request and the taxonomy: the same
inputs always render byte-identical text, so retries and cache keys are
reproducible.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from core.services.taxonomy import Difficulty, Equipment, ExerciseFilter, ExerciseIndex, MuscleGroup
from core.services.workouts import REPS_RANGE, REST_RANGE, SETS_RANGE, exercise_count_range
from core.validators import GenerationRequest, coerce_model

MAX_VOCABULARY = 40

GOAL_GUIDANCE = {
    "strength": "Prioritise heavy compound lifts in low rep ranges (3-6) with long rests.",
    "hypertrophy": "Use moderate loads in the 8-15 rep range with 60-90 second rests.",
    "endurance": "Favour high-rep circuits (15+) with short rests to sustain effort.",
    "weight_loss": "Keep the heart rate up: conditioning moves, supersets and short rests.",
    "general_fitness": "Balance push, pull, legs and core with moderate reps.",
}


def resolve_exclusions(request: GenerationRequest, index: ExerciseIndex) -> tuple[frozenset[str], list[str]]:
    """Split requested exclusions into taxonomy ids and unresolved free-text names."""
    ids: set[str] = set()
    unresolved: list[str] = []
    for item in request.exclude_exercises:
        ex = index.resolve_name(item, fuzzy=False)
        if ex is None:
            unresolved.append(item)
        else:
            ids.add(ex.id)
    return frozenset(ids), unresolved


def candidate_exercises(request: GenerationRequest, index: ExerciseIndex) -> list:
    """Exercises the model may choose from, targeted muscles first, then by name."""
    excluded, _ = resolve_exclusions(request, index)
    criteria = ExerciseFilter(
        available_equipment=request.available_equipment,
        max_difficulty=request.level,
        exclude_ids=excluded,
    )
    targets = frozenset(request.target_muscles)

    def score(ex) -> float:
        if not targets:
            return 0.0
        return 2.0 * len(ex.primary_muscles & targets) + len(ex.secondary_muscles & targets)

    return index.filter(criteria, score=score)[:MAX_VOCABULARY]


def output_schema(request: GenerationRequest, exercise_ids: list[str]) -> dict[str, Any]:
    low, high = exercise_count_range(request.duration_minutes)
    return {
        "type": "object",
        "required": ["name", "rationale", "exercises"],
        "properties": {
            "name": {"type": "string", "description": "Short workout title"},
            "rationale": {"type": "string", "description": "One or two sentences on why this session fits the athlete"},
            "warmup": {"type": "string"},
            "cooldown": {"type": "string"},
            "exercises": {
                "type": "array",
                "minItems": low,
                "maxItems": high,
                "items": {
                    "type": "object",
                    "required": ["exercise_id", "name", "sets", "reps", "rest_seconds"],
                    "properties": {
                        "exercise_id": {"type": "string", "enum": exercise_ids},
                        "name": {"type": "string"},
                        "sets": {"type": "integer", "minimum": SETS_RANGE[0], "maximum": SETS_RANGE[1]},
                        "reps": {"type": "integer", "minimum": REPS_RANGE[0], "maximum": REPS_RANGE[1]},
                        "rest_seconds": {"type": "integer", "minimum": REST_RANGE[0], "maximum": REST_RANGE[1]},
                        "notes": {"type": "string"},
                    },
                },
            },
        },
    }


def _vocab(values) -> str:
    return ", ".join(v.value for v in values) or "none"


def build_prompt(request: GenerationRequest | dict, index: ExerciseIndex) -> str:
    """Render the instruction text and strict output schema for one request.

    Raises InvalidRequest when ``request`` is a mapping that does not validate.
    """
    req = coerce_model(GenerationRequest, request, what="generation request")
    candidates = candidate_exercises(req, index)
    _, unresolved = resolve_exclusions(req, index)
    low, high = exercise_count_range(req.duration_minutes)

    lines = [
        "You are an expert strength and conditioning coach. Design ONE workout session.",
        "",
        "## Athlete",
        f"- Goal: {req.goal.value}",
        f"- Fitness level: {req.level.value}",
        f"- Session length: {req.duration_minutes} minutes including rest",
        f"- Available equipment: {_vocab(sorted(req.available_equipment, key=lambda e: e.value))}",
        f"- Target muscles: {_vocab(req.target_muscles) if req.target_muscles else 'balanced, any'}",
    ]
    if req.exclude_exercises:
        lines.append(f"- Never include: {', '.join(req.exclude_exercises)}")
    if req.preferences:
        lines.append(f"- Preferences: {req.preferences}")
    lines += [
        "",
        "## Coaching focus",
        GOAL_GUIDANCE[req.goal.value],
        "",
        "## Exercise vocabulary",
        "Use ONLY these exercises. Copy exercise_id and name exactly.",
    ]
    for ex in candidates:
        lines.append(
            f"- {ex.id} | {ex.name} | primary: {_vocab(sorted(ex.primary_muscles, key=lambda m: m.value))}"
            f" | {ex.mechanics.value} | {ex.difficulty.value}"
        )
    if not candidates:
        lines.append("- (no exercise matches; use bodyweight movements from the vocabulary below)")
    if unresolved:
        lines.append(f"Unknown exclusions to respect by name: {', '.join(unresolved)}")
    lines += [
        "",
        "## Rules",
        f"- Between {low} and {high} exercises.",
        f"- sets: integer {SETS_RANGE[0]}-{SETS_RANGE[1]}; reps: integer {REPS_RANGE[0]}-{REPS_RANGE[1]}"
        f" (seconds for holds); rest_seconds: integer {REST_RANGE[0]}-{REST_RANGE[1]}.",
        f"- Total time including rest and transitions should be close to {req.duration_minutes} minutes.",
        "",
        "## Allowed values",
        f"- muscle groups: {_vocab(MuscleGroup)}",
        f"- equipment: {_vocab(Equipment)}",
        f"- difficulty: {_vocab(Difficulty)}",
        "",
        "## Output",
        "Return ONLY a JSON object (no markdown fences, no commentary) matching this JSON schema:",
        json.dumps(output_schema(req, [ex.id for ex in candidates]), indent=2, sort_keys=True),
    ]
    return "\n".join(lines) + "\n"


def prompt_fingerprint(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()
