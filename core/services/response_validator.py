"""Validation and local repair of raw model output.

The model is asked for a JSON object (see ``prompt_builder.output_schema``)
but routinely wraps it in prose or markdown, sends numbers as strings, or
ignores bounds. ``validate_response`` is strict and returns a structured list
of violations; ``repair_response`` makes a bounded, side-effect-free attempt
to fix what can be fixed without inventing exercises, then re-validates.

Both are deterministic: the same text always yields the same outcome.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from typing import Any, Optional

from core.services.prompt_builder import resolve_exclusions
from core.services.taxonomy import Exercise, ExerciseIndex
from core.services.workouts import (
    REPS_RANGE,
    REST_RANGE,
    SETS_RANGE,
    PlannedExercise,
    WorkoutPlan,
    assemble_plan,
    duration_bounds_seconds,
    estimate_plan_seconds,
    exercise_count_range,
)
from core.validators import GenerationRequest

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

REST_STEP_SECONDS = 15
MAX_FIT_STEPS = 400

_BOUNDS = {"sets": SETS_RANGE, "reps": REPS_RANGE, "rest_seconds": REST_RANGE}


@dataclass(frozen=True)
class Violation:
    code: str
    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "path": self.path, "message": self.message}


@dataclass(frozen=True)
class ValidationOutcome:
    plan: Optional[WorkoutPlan]
    violations: tuple[Violation, ...] = ()
    repaired: bool = False

    @property
    def ok(self) -> bool:
        return self.plan is not None and not self.violations


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def extract_json(text: str) -> Optional[Any]:
    """Best-effort extraction of a JSON document from surrounding prose.

    Tries the whole text, then the first fenced code block, then the span
    from the first ``{`` to the last ``}`` and the span from the first ``[``
    to the last ``]``, the wider of the two first. Each candidate is also
    retried with trailing commas removed.
    """
    if not text:
        return None
    candidates = [text.strip()]
    fence = _FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1).strip())
    spans = []
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            spans.append((start, end))
    for start, end in sorted(spans, key=lambda span: span[0] - span[1]):
        candidates.append(text[start : end + 1])
    for candidate in candidates:
        for variant in (candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)):
            parsed = _loads(variant)
            if parsed is not None:
                return parsed
    return None


# ---------------------------------------------------------------------------
# Strict validation
# ---------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _resolve_item(item: dict, index: ExerciseIndex) -> Optional[Exercise]:
    ex_id = item.get("exercise_id")
    if isinstance(ex_id, str):
        hit = index.resolve_name(ex_id, fuzzy=False)
        if hit is not None:
            return hit
    name = item.get("name")
    if isinstance(name, str):
        return index.resolve_name(name, fuzzy=True)
    return None


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def validate_payload(payload: Any, request: GenerationRequest, index: ExerciseIndex) -> ValidationOutcome:
    """Check a parsed payload against every plan invariant."""
    if not isinstance(payload, dict):
        return ValidationOutcome(None, (Violation("not_object", "$", "Response must be a JSON object"),))

    violations: list[Violation] = []
    if not _text(payload, "name"):
        violations.append(Violation("missing_field", "name", "Workout name is required"))

    items = payload.get("exercises")
    if not isinstance(items, list) or not items:
        violations.append(Violation("missing_field", "exercises", "A non-empty exercises array is required"))
        return ValidationOutcome(None, tuple(violations))

    excluded_ids, excluded_names = resolve_exclusions(request, index)
    excluded_names_lower = {n.lower() for n in excluded_names}
    available = request.available_equipment
    planned: list[PlannedExercise] = []
    seen: set[str] = set()

    for i, item in enumerate(items):
        path = f"exercises[{i}]"
        if not isinstance(item, dict):
            violations.append(Violation("invalid_item", path, "Exercise entry must be an object"))
            continue
        ex = _resolve_item(item, index)
        if ex is None:
            label = item.get("name") or item.get("exercise_id") or "?"
            violations.append(Violation("unknown_exercise", path, f"'{label}' is not in the exercise taxonomy"))
            continue
        if ex.id in excluded_ids or ex.name.lower() in excluded_names_lower:
            violations.append(Violation("excluded_exercise", path, f"{ex.name} was explicitly excluded"))
        missing = ex.required_equipment - available
        if missing:
            needed = ", ".join(sorted(e.value for e in missing))
            violations.append(Violation("equipment_unavailable", path, f"{ex.name} needs {needed}"))
        if ex.id in seen:
            violations.append(Violation("duplicate_exercise", path, f"{ex.name} appears more than once"))
        seen.add(ex.id)

        numbers: dict[str, int] = {}
        for key, (low, high) in _BOUNDS.items():
            value = item.get(key)
            if value is None:
                violations.append(Violation("missing_field", f"{path}.{key}", f"{key} is required"))
            elif not _is_int(value):
                violations.append(Violation("not_integer", f"{path}.{key}", f"{key} must be an integer, got {value!r}"))
            elif not low <= value <= high:
                violations.append(Violation("out_of_range", f"{path}.{key}", f"{key}={value} outside {low}-{high}"))
            else:
                numbers[key] = value
        if len(numbers) == len(_BOUNDS):
            notes = item.get("notes")
            planned.append(
                PlannedExercise(
                    exercise_id=ex.id,
                    name=ex.name,
                    sets=numbers["sets"],
                    reps=numbers["reps"],
                    rest_seconds=numbers["rest_seconds"],
                    notes=notes.strip() if isinstance(notes, str) else "",
                )
            )

    low, high = exercise_count_range(request.duration_minutes)
    if not low <= len(items) <= high:
        violations.append(
            Violation("exercise_count", "exercises", f"{len(items)} exercises; expected {low}-{high} for {request.duration_minutes} min")
        )

    if not violations:
        seconds = estimate_plan_seconds(planned, index)
        lo_s, hi_s = duration_bounds_seconds(request.duration_minutes)
        if not lo_s <= seconds <= hi_s:
            violations.append(
                Violation(
                    "duration_mismatch",
                    "exercises",
                    f"Planned {seconds / 60:.1f} min; requested {request.duration_minutes} min",
                )
            )

    if violations:
        return ValidationOutcome(None, tuple(violations))

    plan = assemble_plan(
        name=_text(payload, "name"),
        exercises=planned,
        index=index,
        rationale=_text(payload, "rationale"),
        warmup=_text(payload, "warmup"),
        cooldown=_text(payload, "cooldown"),
    )
    return ValidationOutcome(plan)


def validate_response(text: str, request: GenerationRequest, index: ExerciseIndex) -> ValidationOutcome:
    """Strictly parse ``text`` as JSON and validate it. No repair is attempted."""
    payload = _loads(text.strip()) if isinstance(text, str) else None
    if payload is None:
        return ValidationOutcome(None, (Violation("invalid_json", "$", "Response is not valid JSON"),))
    return validate_payload(payload, request, index)


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------

def _coerce_int(value: Any, default: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    if isinstance(value, bool):
        number = default
    elif isinstance(value, (int, float)):
        number = int(round(value))
    elif isinstance(value, str):
        match = _NUMBER_RE.search(value)
        number = int(round(float(match.group()))) if match else default
    else:
        number = default
    return min(high, max(low, number))


def fit_duration(
    items: list[PlannedExercise],
    duration_minutes: int,
    index: ExerciseIndex,
    min_count: int = 1,
) -> list[PlannedExercise]:
    """Adjust sets, rest and (when over) exercise count towards the target duration.

    Greedy: each step applies the single change that brings the estimate
    closest to the target, stopping once within tolerance or when no change
    helps. Reps are never touched. Exercises are only ever removed.
    """
    target = duration_minutes * 60.0
    lo_s, hi_s = duration_bounds_seconds(duration_minutes)
    current = list(items)

    for _ in range(MAX_FIT_STEPS):
        seconds = estimate_plan_seconds(current, index)
        if lo_s <= seconds <= hi_s or not current:
            break
        best: Optional[list[PlannedExercise]] = None
        best_gap = abs(seconds - target)
        for candidate in _neighbours(current, seconds > target, min_count):
            gap = abs(estimate_plan_seconds(candidate, index) - target)
            if gap < best_gap:
                best, best_gap = candidate, gap
        if best is None:
            break
        current = best
    return current


def _neighbours(items: list[PlannedExercise], shrink: bool, min_count: int):
    step = -1 if shrink else 1
    for i, p in enumerate(items):
        sets = p.sets + step
        if SETS_RANGE[0] <= sets <= SETS_RANGE[1]:
            yield items[:i] + [replace(p, sets=sets)] + items[i + 1 :]
        rest = p.rest_seconds + step * REST_STEP_SECONDS
        if p.sets > 1 and REST_RANGE[0] <= rest <= REST_RANGE[1]:
            yield items[:i] + [replace(p, rest_seconds=rest)] + items[i + 1 :]
    if shrink and len(items) > min_count:
        yield items[:-1]


def repair_payload(payload: Any, request: GenerationRequest, index: ExerciseIndex) -> Optional[dict]:
    """Return a repaired copy of ``payload`` or None when nothing is salvageable.

    Unresolvable, excluded, equipment-violating and duplicate exercises are
    dropped; numeric fields are coerced and clamped; the list is truncated to
    the allowed count and fitted to the requested duration.
    """
    if isinstance(payload, list):
        payload = {"exercises": payload}
    if not isinstance(payload, dict):
        return None
    if "exercises" not in payload:
        nested = [v for v in payload.values() if isinstance(v, dict) and "exercises" in v]
        if len(nested) == 1:
            payload = nested[0]
    raw_items = payload.get("exercises")
    if not isinstance(raw_items, list):
        return None

    excluded_ids, excluded_names = resolve_exclusions(request, index)
    excluded_names_lower = {n.lower() for n in excluded_names}
    available = request.available_equipment
    kept: list[PlannedExercise] = []
    seen: set[str] = set()
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        ex = _resolve_item(item, index)
        if ex is None or ex.id in seen:
            continue
        if ex.id in excluded_ids or ex.name.lower() in excluded_names_lower:
            continue
        if not ex.required_equipment <= available:
            continue
        seen.add(ex.id)
        notes = item.get("notes")
        kept.append(
            PlannedExercise(
                exercise_id=ex.id,
                name=ex.name,
                sets=_coerce_int(item.get("sets"), ex.default_sets, SETS_RANGE),
                reps=_coerce_int(item.get("reps"), ex.default_reps, REPS_RANGE),
                rest_seconds=_coerce_int(item.get("rest_seconds"), ex.default_rest_seconds, REST_RANGE),
                notes=notes.strip() if isinstance(notes, str) else "",
            )
        )
    if not kept:
        return None

    low, high = exercise_count_range(request.duration_minutes)
    kept = fit_duration(kept[:high], request.duration_minutes, index, min_count=low)

    name = _text(payload, "name") or f"{request.goal.value.replace('_', ' ').title()} Workout"
    return {
        "name": name,
        "rationale": _text(payload, "rationale"),
        "warmup": _text(payload, "warmup"),
        "cooldown": _text(payload, "cooldown"),
        "exercises": [
            {
                "exercise_id": p.exercise_id,
                "name": p.name,
                "sets": p.sets,
                "reps": p.reps,
                "rest_seconds": p.rest_seconds,
                "notes": p.notes,
            }
            for p in kept
        ],
    }


def repair_response(text: str, request: GenerationRequest, index: ExerciseIndex) -> ValidationOutcome:
    """Extract, repair and re-validate raw model text."""
    payload = extract_json(text)
    if payload is None:
        return ValidationOutcome(None, (Violation("invalid_json", "$", "No JSON document found in response"),), repaired=True)
    repaired = repair_payload(payload, request, index)
    if repaired is None:
        return ValidationOutcome(
            None, (Violation("unrepairable", "exercises", "No usable taxonomy exercises in response"),), repaired=True
        )
    outcome = validate_payload(repaired, request, index)
    return replace(outcome, repaired=True)
