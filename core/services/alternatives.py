"""Alternative-exercise scoring.

Similarity is a weighted blend of facet overlaps, all in [0, 1]:

    primary muscles (Jaccard)      0.45
    secondary muscles (Jaccard)    0.15
    same mechanics                 0.15
    exercise-type tags (Jaccard)   0.15
    same movement pattern          0.10

then multiplied by ``1 - 0.15 * tier distance`` from the requested (or the
source exercise's) difficulty. Equipment restrictions are a hard filter.
Everything here is deterministic and needs no model; ``enrich_reasons``
optionally rewrites reason text through the model on a best-effort basis.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from typing import Optional

from core.errors import TaxonomyLookupMiss
from core.services.model_client import CompletionOptions, ModelClient
from core.services.response_validator import extract_json
from core.services.taxonomy import Difficulty, Exercise, ExerciseIndex
from core.validators import AlternativeCriteria, AlternativeReason, coerce_model

logger = logging.getLogger(__name__)

PRIMARY_WEIGHT = 0.45
SECONDARY_WEIGHT = 0.15
MECHANICS_WEIGHT = 0.15
TYPE_WEIGHT = 0.15
PATTERN_WEIGHT = 0.10
DIFFICULTY_PENALTY = 0.15
MAX_REASON_CHARS = 240

EQUIPMENT_CAVEAT = "equipment"


@dataclass(frozen=True)
class Alternative:
    exercise: Exercise
    similarity_score: float
    reason: str
    caveat: Optional[str] = None

    def to_dict(self) -> dict:
        ex = self.exercise
        return {
            "id": ex.id,
            "name": ex.name,
            "difficulty": ex.difficulty.value,
            "equipment": sorted(e.value for e in ex.equipment),
            "primary_muscles": sorted(m.value for m in ex.primary_muscles),
            "secondary_muscles": sorted(m.value for m in ex.secondary_muscles),
            "similarity_score": self.similarity_score,
            "reason": self.reason,
            "caveat": self.caveat,
        }


@dataclass(frozen=True)
class AlternativesResult:
    source: Exercise
    alternatives: tuple[Alternative, ...]
    equipment_relaxed: bool = False
    enriched: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.alternatives

    @property
    def message(self) -> str:
        if self.is_empty:
            return f"No other exercise in the library works the same muscle groups as {self.source.name}."
        if self.equipment_relaxed:
            return "Nothing matches your equipment; showing the closest match that needs other equipment."
        return ""

    def to_dict(self) -> dict:
        return {
            "exercise": {
                "id": self.source.id,
                "name": self.source.name,
                "difficulty": self.source.difficulty.value,
                "equipment": sorted(e.value for e in self.source.equipment),
                "primary_muscles": sorted(m.value for m in self.source.primary_muscles),
            },
            "alternatives": [a.to_dict() for a in self.alternatives],
            "equipment_relaxed": self.equipment_relaxed,
            "enriched": self.enriched,
            "empty": self.is_empty,
            "message": self.message,
        }


def _jaccard(a: frozenset, b: frozenset) -> float:
    if not a and not b:
        return 1.0
    return len(a & b) / len(a | b)


def base_similarity(source: Exercise, candidate: Exercise) -> float:
    score = PRIMARY_WEIGHT * _jaccard(source.primary_muscles, candidate.primary_muscles)
    score += SECONDARY_WEIGHT * _jaccard(source.secondary_muscles, candidate.secondary_muscles)
    if source.mechanics is candidate.mechanics:
        score += MECHANICS_WEIGHT
    score += TYPE_WEIGHT * _jaccard(source.types, candidate.types)
    if source.movement_pattern is not None and source.movement_pattern is candidate.movement_pattern:
        score += PATTERN_WEIGHT
    return score


def difficulty_factor(reference: Difficulty, candidate: Difficulty) -> float:
    return max(0.0, 1.0 - DIFFICULTY_PENALTY * abs(reference.rank - candidate.rank))


def similarity(source: Exercise, candidate: Exercise, reference: Optional[Difficulty] = None) -> float:
    """Final score on a 0-100 scale, rounded for stable comparisons."""
    reference = reference or source.difficulty
    return round(100.0 * base_similarity(source, candidate) * difficulty_factor(reference, candidate.difficulty), 2)


def _values(items) -> str:
    return ", ".join(sorted(i.value.replace("_", " ") for i in items))


def build_reason(source: Exercise, candidate: Exercise, criteria: AlternativeCriteria) -> str:
    shared_primary = source.primary_muscles & candidate.primary_muscles
    if shared_primary:
        head = f"Targets the same primary muscles ({_values(shared_primary)})"
    else:
        head = f"Works overlapping muscles ({_values(source.all_muscles & candidate.all_muscles)})"
    facets = [head]
    if source.mechanics is candidate.mechanics:
        facets.append(f"same {candidate.mechanics.value} movement")
    if source.movement_pattern is not None and source.movement_pattern is candidate.movement_pattern:
        facets.append(f"{candidate.movement_pattern.value} pattern")

    gap = candidate.difficulty.rank - source.difficulty.rank
    level = "same difficulty" if gap == 0 else ("easier" if gap < 0 else "harder")
    needs = _values(candidate.required_equipment) or "no equipment"

    reason = criteria.reason
    if reason is AlternativeReason.EQUIPMENT:
        tail = f"needs {needs}"
    elif reason is AlternativeReason.INJURY:
        tail = f"{level} option to train around the injury; needs {needs}"
    elif reason is AlternativeReason.DIFFICULTY:
        tail = f"{level} than {source.name} ({candidate.difficulty.value})"
    elif reason is AlternativeReason.PREFERENCE:
        tail = f"different feel with {needs}"
    else:
        tail = f"{level}, needs {needs}"
    return f"{', '.join(facets)}; {tail}."


def _rank_key(alt: Alternative):
    return (-alt.similarity_score, alt.exercise.difficulty.rank, alt.exercise.name.lower(), alt.exercise.id)


def suggest_alternatives(
    exercise_id: str,
    index: ExerciseIndex,
    criteria: Optional[AlternativeCriteria | dict] = None,
) -> AlternativesResult:
    """Rank substitutes for ``exercise_id``.

    Raises TaxonomyLookupMiss when the source exercise is unknown and
    InvalidRequest when ``criteria`` does not validate.
    """
    crit = coerce_model(AlternativeCriteria, criteria or {}, what="alternative criteria")
    try:
        source = index.get_by_id(exercise_id)
    except TaxonomyLookupMiss:
        logger.warning("Alternatives requested for unknown exercise", extra={"ctx_exercise_id": exercise_id})
        raise

    reference = crit.difficulty or source.difficulty
    related = [ex for ex in index if ex.id != source.id and ex.all_muscles & source.all_muscles]

    available = crit.available_equipment
    allowed = related if available is None else [ex for ex in related if ex.required_equipment <= available]

    def score(ex: Exercise) -> Alternative:
        return Alternative(ex, similarity(source, ex, reference), build_reason(source, ex, crit))

    if allowed:
        ranked = sorted((score(ex) for ex in allowed), key=_rank_key)
        return AlternativesResult(source, tuple(ranked[: crit.limit]))

    if related:
        best = sorted((score(ex) for ex in related), key=_rank_key)[0]
        logger.info(
            "No alternative fits the equipment; returning closest relaxed match",
            extra={"ctx_exercise_id": source.id, "ctx_match": best.exercise.id},
        )
        return AlternativesResult(source, (replace(best, caveat=EQUIPMENT_CAVEAT),), equipment_relaxed=True)

    return AlternativesResult(source, ())


def _enrichment_prompt(result: AlternativesResult, criteria: AlternativeCriteria) -> str:
    src = result.source
    lines = [
        f'You are a fitness expert. Explain why each exercise is a good substitute for "{src.name}".',
        f"Original: {src.name}; primary muscles: {_values(src.primary_muscles)}; equipment: {_values(src.equipment)}.",
    ]
    if criteria.reason:
        lines.append(f"Reason for change: {criteria.reason.value}.")
    lines.append("Substitutes:")
    for alt in result.alternatives:
        lines.append(f"- {alt.exercise.id}: {alt.exercise.name} ({_values(alt.exercise.primary_muscles)})")
    lines.append(
        "Return ONLY a JSON array of objects "
        + json.dumps({"exercise_id": "string", "reason": "one sentence"}, sort_keys=True)
        + ", one per substitute."
    )
    return "\n".join(lines)


async def enrich_reasons(
    result: AlternativesResult,
    client: Optional[ModelClient],
    options: CompletionOptions,
    criteria: Optional[AlternativeCriteria] = None,
) -> AlternativesResult:
    """Replace templated reasons with model-written ones where possible.

    Ranking, scores and membership never change. Any failure returns
    ``result`` untouched.
    """
    if client is None or result.is_empty:
        return result
    crit = criteria or AlternativeCriteria()
    try:
        raw = await asyncio.wait_for(
            client.complete(_enrichment_prompt(result, crit), options),
            timeout=options.timeout_seconds,
        )
    except Exception as exc:
        logger.warning("Reason enrichment skipped: %s", exc or type(exc).__name__)
        return result

    payload = extract_json(raw) if isinstance(raw, str) else None
    if not isinstance(payload, list):
        logger.warning("Reason enrichment returned no usable JSON array")
        return result

    rewritten: dict[str, str] = {}
    for item in payload:
        if not isinstance(item, dict):
            continue
        ex_id, reason = item.get("exercise_id"), item.get("reason")
        if isinstance(ex_id, str) and isinstance(reason, str) and reason.strip():
            rewritten.setdefault(ex_id, reason.strip()[:MAX_REASON_CHARS])

    alternatives = tuple(
        replace(a, reason=rewritten[a.exercise.id]) if a.exercise.id in rewritten else a for a in result.alternatives
    )
    changed = any(a.exercise.id in rewritten for a in result.alternatives)
    return replace(result, alternatives=alternatives, enriched=changed)
