"""Tests for alternative-exercise scoring."""

from __future__ import annotations

import json

import pytest

from core.errors import InvalidRequest, TaxonomyLookupMiss
from core.services.alternatives import (
    EQUIPMENT_CAVEAT,
    difficulty_factor,
    enrich_reasons,
    similarity,
    suggest_alternatives,
)
from core.services.exercise_catalog import default_index
from core.services.model_client import CompletionOptions, ModelClient
from core.services.taxonomy import Difficulty, Equipment, ExerciseIndex
from core.validators import AlternativeCriteria


class FixedClient(ModelClient):
    def __init__(self, reply):
        self.reply = reply

    async def complete(self, prompt, options):
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply


def _make_index(*records) -> ExerciseIndex:
    defaults = {"equipment": ["bodyweight"], "difficulty": "beginner", "mechanics": "compound", "types": ["strength"]}
    return ExerciseIndex.from_records([{**defaults, **r} for r in records])


# --- Scoring ---

def test_similarity_to_self_is_maximal():
    index = default_index()
    bench = index.get_by_id("barbell-bench-press")
    assert similarity(bench, bench) == 100.0


def test_difficulty_factor_penalises_tier_distance():
    assert difficulty_factor(Difficulty.INTERMEDIATE, Difficulty.INTERMEDIATE) == 1.0
    assert difficulty_factor(Difficulty.BEGINNER, Difficulty.EXPERT) == pytest.approx(0.55)


def test_closest_match_ranks_first():
    index = default_index()
    result = suggest_alternatives("barbell-bench-press", index, {"equipment": ["dumbbell", "bench"]})
    assert result.alternatives[0].exercise.id == "dumbbell-bench-press"


def test_results_are_sorted_capped_and_exclude_source():
    index = default_index()
    result = suggest_alternatives("barbell-squat", index, AlternativeCriteria(limit=7))
    ids = [a.exercise.id for a in result.alternatives]
    scores = [a.similarity_score for a in result.alternatives]
    assert len(ids) == 7
    assert "barbell-squat" not in ids
    assert scores == sorted(scores, reverse=True)
    assert all(0 <= s <= 100 for s in scores)
    assert all(a.reason for a in result.alternatives)


def test_equipment_is_a_hard_filter():
    index = default_index()
    result = suggest_alternatives("barbell-bench-press", index, {"equipment": ["dumbbell"]})
    assert not result.equipment_relaxed
    assert result.alternatives[0].exercise.id == "push-up"
    for alt in result.alternatives:
        assert alt.exercise.required_equipment <= {Equipment.DUMBBELL}
        assert alt.caveat is None


def test_empty_equipment_list_means_bodyweight_only():
    index = default_index()
    result = suggest_alternatives("barbell-squat", index, {"equipment": []})
    assert result.alternatives
    assert all(not a.exercise.required_equipment for a in result.alternatives)


def test_preferred_difficulty_changes_ranking():
    index = default_index()
    squat = index.get_by_id("barbell-squat")
    goblet = index.get_by_id("goblet-squat")
    assert similarity(squat, goblet, Difficulty.BEGINNER) > similarity(squat, goblet)


def test_equipment_relaxed_best_match_is_flagged():
    index = _make_index(
        {"id": "barbell-squat", "name": "Barbell Squat", "primary_muscles": ["quadriceps"], "equipment": ["barbell"]},
        {"id": "leg-press", "name": "Leg Press", "primary_muscles": ["quadriceps"], "equipment": ["machine"]},
        {"id": "calf-raise", "name": "Calf Raise", "primary_muscles": ["calves"]},
    )
    result = suggest_alternatives("barbell-squat", index, {"equipment": ["dumbbell"]})
    assert result.equipment_relaxed
    assert [a.exercise.id for a in result.alternatives] == ["leg-press"]
    assert result.alternatives[0].caveat == EQUIPMENT_CAVEAT
    assert result.message
    assert result.to_dict()["equipment_relaxed"] is True


def test_no_shared_muscles_gives_explicit_empty_result():
    index = _make_index(
        {"id": "calf-raise", "name": "Calf Raise", "primary_muscles": ["calves"]},
        {"id": "push-up", "name": "Push-up", "primary_muscles": ["chest"]},
    )
    result = suggest_alternatives("calf-raise", index)
    assert result.is_empty
    data = result.to_dict()
    assert data["empty"] is True
    assert "Calf Raise" in data["message"]


def test_unknown_source_raises():
    with pytest.raises(TaxonomyLookupMiss):
        suggest_alternatives("moon-walk", default_index())


def test_invalid_criteria_raise():
    with pytest.raises(InvalidRequest):
        suggest_alternatives("push-up", default_index(), {"limit": 0})


def test_reason_reflects_criteria():
    index = default_index()
    by_equipment = suggest_alternatives("barbell-bench-press", index, {"equipment": [], "reason": "equipment"})
    push_up = next(a for a in by_equipment.alternatives if a.exercise.id == "push-up")
    assert "Targets the same primary muscles (chest)" in push_up.reason
    assert "needs no equipment" in push_up.reason

    by_difficulty = suggest_alternatives("barbell-bench-press", index, {"reason": "difficulty"})
    assert any("than Barbell Bench Press" in a.reason for a in by_difficulty.alternatives)


def test_suggestions_are_deterministic():
    index = default_index()
    assert suggest_alternatives("pull-up", index) == suggest_alternatives("pull-up", index)


# --- Enrichment ---

@pytest.mark.asyncio
async def test_enrichment_only_rewrites_reasons():
    index = default_index()
    base = suggest_alternatives("barbell-bench-press", index, {"equipment": ["dumbbell"], "limit": 3})
    first = base.alternatives[0].exercise.id
    reply = json.dumps(
        [
            {"exercise_id": first, "reason": "Same pressing pattern without a barbell."},
            {"exercise_id": "clean-and-press", "reason": "Not in the list."},
        ]
    )
    enriched = await enrich_reasons(base, FixedClient(reply), CompletionOptions(timeout_ms=1000))
    assert enriched.enriched
    assert [a.exercise.id for a in enriched.alternatives] == [a.exercise.id for a in base.alternatives]
    assert [a.similarity_score for a in enriched.alternatives] == [a.similarity_score for a in base.alternatives]
    assert enriched.alternatives[0].reason == "Same pressing pattern without a barbell."
    assert enriched.alternatives[1].reason == base.alternatives[1].reason


@pytest.mark.asyncio
async def test_enrichment_accepts_an_array_wrapped_in_prose():
    base = suggest_alternatives("push-up", default_index(), {"limit": 3})
    first = base.alternatives[0].exercise.id
    reply = 'Here are the reasons: [{"exercise_id": "%s", "reason": "Keeps the pushing pattern."}] Hope it helps.' % first
    enriched = await enrich_reasons(base, FixedClient(reply), CompletionOptions(timeout_ms=1000))
    assert enriched.enriched
    assert enriched.alternatives[0].reason == "Keeps the pushing pattern."


@pytest.mark.asyncio
async def test_enrichment_failure_keeps_deterministic_result():
    base = suggest_alternatives("push-up", default_index(), {"limit": 3})
    options = CompletionOptions(timeout_ms=1000)
    assert await enrich_reasons(base, FixedClient(RuntimeError("down")), options) is base
    assert await enrich_reasons(base, FixedClient("no json"), options) is base
    assert await enrich_reasons(base, None, options) is base
