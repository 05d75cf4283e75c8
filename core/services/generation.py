"""Workout generation orchestrator.

Wraps the non-deterministic model call in a small state machine::

    building -> awaiting_model -> validating -> succeeded
                                      |-> repairing -> validating
                                      |-> (next attempt) ... -> falling_back -> succeeded

Model timeouts, transport errors and invalid output all count as failed
attempts. Once attempts are exhausted a rule-based plan is returned, so
callers never see a generation failure while the taxonomy is non-empty.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional

from core.cache_utils import TTLCache
from core.config import Settings, get_settings
from core.errors import ModelError, ModelTimeout
from core.services.fallback import build_fallback_plan
from core.services.model_client import CompletionOptions, ModelClient
from core.services.prompt_builder import build_prompt, prompt_fingerprint
from core.services.response_validator import Violation, repair_response, validate_response
from core.services.taxonomy import ExerciseIndex
from core.services.workouts import WorkoutPlan
from core.validators import GenerationRequest, coerce_model

logger = logging.getLogger(__name__)

SOURCE_MODEL = "model"
SOURCE_FALLBACK = "fallback"


class GenerationState(str, Enum):
    BUILDING = "building"
    AWAITING_MODEL = "awaiting_model"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    FALLING_BACK = "falling_back"
    SUCCEEDED = "succeeded"


@dataclass
class GenerationStats:
    requests: int = 0
    model_successes: int = 0
    repaired: int = 0
    fallbacks: int = 0
    cache_hits: int = 0
    failed_attempts: int = 0
    timeouts: int = 0
    total_latency_ms: float = 0.0

    def record_latency(self, started: float) -> None:
        self.total_latency_ms += (time.perf_counter() - started) * 1000.0

    def snapshot(self) -> dict:
        data = asdict(self)
        served = self.model_successes + self.fallbacks + self.cache_hits
        data["total_latency_ms"] = round(self.total_latency_ms, 1)
        data["average_latency_ms"] = round(self.total_latency_ms / served, 1) if served else 0.0
        data["model_success_rate"] = round((self.model_successes + self.cache_hits) / served, 3) if served else 0.0
        return data


@dataclass(frozen=True)
class GenerationResult:
    plan: WorkoutPlan
    source: str
    cached: bool = False
    attempts: int = 0
    repaired: bool = False
    quality_score: int = 0
    violations: tuple[Violation, ...] = ()

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "source": self.source,
            "cached": self.cached,
            "attempts": self.attempts,
            "repaired": self.repaired,
            "quality_score": self.quality_score,
            "violations": [v.to_dict() for v in self.violations],
        }


def quality_score(plan: WorkoutPlan) -> int:
    """Heuristic 0-100 completeness score, for observability only."""
    exercises = plan.exercises
    score = min(len(exercises) * 4, 20)
    if len(plan.rationale) > 10:
        score += 10
    if exercises and all(p.name and p.sets and p.reps for p in exercises):
        score += 20
    with_notes = sum(1 for p in exercises if len(p.notes) > 5)
    score += min(with_notes * 3, 15)
    if len({p.reps for p in exercises}) > 1:
        score += 15
    if plan.warmup:
        score += 10
    if plan.cooldown:
        score += 10
    return min(score, 100)


class WorkoutGenerator:
    """Turns a generation request into a trustworthy ``WorkoutPlan``.

    One instance is shared per process; the only mutable state is the
    response cache and the stats counters.
    """

    def __init__(
        self,
        index: ExerciseIndex,
        client: Optional[ModelClient] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.index = index
        self.client = client
        self.settings = settings or get_settings()
        self.options = CompletionOptions.from_settings(self.settings)
        self.max_attempts = max(1, self.settings.generation_max_attempts)
        self.cache = TTLCache(
            ttl_seconds=self.settings.generation_cache_ttl_seconds,
            max_entries=self.settings.generation_cache_size,
        )
        self.stats = GenerationStats()
        self._sleep = sleep

    def _transition(self, state: GenerationState, attempt: int, **context) -> None:
        extra = {"ctx_state": state.value, "ctx_attempt": attempt}
        extra.update({f"ctx_{k}": v for k, v in context.items()})
        logger.info("generation_state", extra=extra)

    def _backoff_seconds(self, attempt: int) -> float:
        """Delay before ``attempt`` (2-based): base x 2^(failed_attempt - 1)."""
        base = self.settings.generation_retry_backoff_ms
        return base * (2 ** (attempt - 2)) / 1000.0

    async def _call_model(self, prompt: str, attempt: int) -> Optional[str]:
        try:
            return await asyncio.wait_for(
                self.client.complete(prompt, self.options),
                timeout=self.options.timeout_seconds,
            )
        except (asyncio.TimeoutError, ModelTimeout):
            self.stats.timeouts += 1
            logger.warning("Model call timed out after %d ms (attempt %d)", self.options.timeout_ms, attempt)
        except ModelError as exc:
            logger.warning("Model call failed (attempt %d): %s", attempt, exc)
        except Exception:
            logger.exception("Unexpected error from model client (attempt %d)", attempt)
        return None

    async def generate(self, request: GenerationRequest | dict) -> GenerationResult:
        """Return a validated plan; falls back to a template when the model cannot deliver.

        Raises InvalidRequest for malformed input only.
        """
        req = coerce_model(GenerationRequest, request, what="generation request")
        started = time.perf_counter()
        self.stats.requests += 1

        self._transition(GenerationState.BUILDING, 0)
        prompt = build_prompt(req, self.index)

        if self.client is None:
            logger.info("Model unavailable; using rule-based plan", extra={"ctx_goal": req.goal.value})
            return self._fallback(req, 0, (), started)

        key = prompt_fingerprint(prompt)
        hit = self.cache.get(key)
        if hit is not None:
            self.stats.cache_hits += 1
            self.stats.record_latency(started)
            logger.info("Generation cache hit", extra={"ctx_key": key[:12]})
            return replace(hit, cached=True)

        violations: tuple[Violation, ...] = ()
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = self._backoff_seconds(attempt)
                if delay > 0:
                    await self._sleep(delay)

            self._transition(GenerationState.AWAITING_MODEL, attempt)
            raw = await self._call_model(prompt, attempt)
            if raw is None:
                self.stats.failed_attempts += 1
                continue

            self._transition(GenerationState.VALIDATING, attempt)
            outcome = validate_response(raw, req, self.index)
            if not outcome.ok:
                self._transition(GenerationState.REPAIRING, attempt, violations=len(outcome.violations))
                outcome = repair_response(raw, req, self.index)
                self._transition(GenerationState.VALIDATING, attempt, repaired=True)

            if outcome.ok:
                result = GenerationResult(
                    plan=outcome.plan,
                    source=SOURCE_MODEL,
                    attempts=attempt,
                    repaired=outcome.repaired,
                    quality_score=quality_score(outcome.plan),
                )
                self.stats.model_successes += 1
                if outcome.repaired:
                    self.stats.repaired += 1
                self.stats.record_latency(started)
                self.cache.set(key, result)
                self._transition(GenerationState.SUCCEEDED, attempt, source=SOURCE_MODEL)
                return result

            violations = outcome.violations
            self.stats.failed_attempts += 1
            logger.warning(
                "Model output rejected (attempt %d): %s",
                attempt,
                ", ".join(sorted({v.code for v in violations})),
            )

        return self._fallback(req, self.max_attempts, violations, started)

    def _fallback(
        self,
        req: GenerationRequest,
        attempts: int,
        violations: tuple[Violation, ...],
        started: float,
    ) -> GenerationResult:
        self._transition(GenerationState.FALLING_BACK, attempts)
        plan = build_fallback_plan(req, self.index)
        self.stats.fallbacks += 1
        self.stats.record_latency(started)
        self._transition(GenerationState.SUCCEEDED, attempts, source=SOURCE_FALLBACK)
        return GenerationResult(
            plan=plan,
            source=SOURCE_FALLBACK,
            attempts=attempts,
            quality_score=quality_score(plan),
            violations=violations,
        )
