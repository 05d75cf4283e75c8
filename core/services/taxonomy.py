"""Exercise taxonomy: closed vocabularies and the immutable exercise index.

Raw exercise records (seed data, database rows) are validated once at the
boundary and frozen into ``Exercise`` values. ``ExerciseIndex`` is built once
per process and only ever read afterwards, so it can be shared across
concurrent requests without locking.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from difflib import get_close_matches
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.errors import InvalidRequest, TaxonomyLookupMiss


class MuscleGroup(str, Enum):
    CHEST = "chest"
    BACK = "back"
    LATS = "lats"
    LOWER_BACK = "lower_back"
    SHOULDERS = "shoulders"
    BICEPS = "biceps"
    TRICEPS = "triceps"
    FOREARMS = "forearms"
    CORE = "core"
    QUADRICEPS = "quadriceps"
    HAMSTRINGS = "hamstrings"
    GLUTES = "glutes"
    CALVES = "calves"
    FULL_BODY = "full_body"


class Equipment(str, Enum):
    BODYWEIGHT = "bodyweight"
    BARBELL = "barbell"
    DUMBBELL = "dumbbell"
    KETTLEBELL = "kettlebell"
    CABLE = "cable"
    MACHINE = "machine"
    RESISTANCE_BAND = "resistance_band"
    PULL_UP_BAR = "pull_up_bar"
    BENCH = "bench"
    JUMP_ROPE = "jump_rope"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_ORDER.index(self)


_DIFFICULTY_ORDER = [Difficulty.BEGINNER, Difficulty.INTERMEDIATE, Difficulty.ADVANCED, Difficulty.EXPERT]


class Mechanics(str, Enum):
    COMPOUND = "compound"
    ISOLATION = "isolation"


class ExerciseType(str, Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    PLYOMETRIC = "plyometric"
    FLEXIBILITY = "flexibility"
    BALANCE = "balance"
    POWERLIFTING = "powerlifting"
    OLYMPIC_WEIGHTLIFTING = "olympic_weightlifting"


class MovementPattern(str, Enum):
    PUSH = "push"
    PULL = "pull"
    SQUAT = "squat"
    HINGE = "hinge"
    LUNGE = "lunge"
    CARRY = "carry"
    ROTATION = "rotation"
    ISOMETRIC = "isometric"
    LOCOMOTION = "locomotion"


@dataclass(frozen=True)
class Exercise:
    """Immutable reference data for a single exercise."""

    id: str
    name: str
    primary_muscles: frozenset[MuscleGroup]
    secondary_muscles: frozenset[MuscleGroup]
    equipment: frozenset[Equipment]
    difficulty: Difficulty
    mechanics: Mechanics
    types: frozenset[ExerciseType]
    movement_pattern: Optional[MovementPattern] = None
    default_sets: int = 3
    default_reps: int = 10
    default_rest_seconds: int = 60
    calories_per_minute: float = 5.0
    calories_per_rep: float = 0.3
    seconds_per_rep: float = 3.0

    @property
    def slug(self) -> str:
        return slugify(self.name)

    @property
    def required_equipment(self) -> frozenset[Equipment]:
        """Equipment the athlete must own; bodyweight is always available."""
        return frozenset(e for e in self.equipment if e is not Equipment.BODYWEIGHT)

    @property
    def all_muscles(self) -> frozenset[MuscleGroup]:
        return self.primary_muscles | self.secondary_muscles


class ExerciseRecord(BaseModel):
    """Boundary validation for raw exercise data."""

    id: str = Field(min_length=1, max_length=80)
    name: str = Field(min_length=1, max_length=120)
    primary_muscles: list[MuscleGroup] = Field(min_length=1)
    secondary_muscles: list[MuscleGroup] = Field(default_factory=list)
    equipment: list[Equipment] = Field(default_factory=lambda: [Equipment.BODYWEIGHT])
    difficulty: Difficulty = Difficulty.BEGINNER
    mechanics: Mechanics = Mechanics.COMPOUND
    types: list[ExerciseType] = Field(default_factory=lambda: [ExerciseType.STRENGTH])
    movement_pattern: Optional[MovementPattern] = None
    default_sets: int = Field(default=3, ge=1, le=10)
    default_reps: int = Field(default=10, ge=1, le=120)
    default_rest_seconds: int = Field(default=60, ge=0, le=1000)
    calories_per_minute: float = Field(default=5.0, ge=0)
    calories_per_rep: float = Field(default=0.3, ge=0)
    seconds_per_rep: float = Field(default=3.0, gt=0, le=10)

    @field_validator("name")
    @classmethod
    def name_has_text(cls, v):
        if not slugify(v):
            raise ValueError("name must contain letters or digits")
        return v.strip()

    def to_exercise(self) -> Exercise:
        return Exercise(
            id=self.id,
            name=self.name,
            primary_muscles=frozenset(self.primary_muscles),
            secondary_muscles=frozenset(self.secondary_muscles) - frozenset(self.primary_muscles),
            equipment=frozenset(self.equipment or [Equipment.BODYWEIGHT]),
            difficulty=self.difficulty,
            mechanics=self.mechanics,
            types=frozenset(self.types),
            movement_pattern=self.movement_pattern,
            default_sets=self.default_sets,
            default_reps=self.default_reps,
            default_rest_seconds=self.default_rest_seconds,
            calories_per_minute=self.calories_per_minute,
            calories_per_rep=self.calories_per_rep,
            seconds_per_rep=self.seconds_per_rep,
        )


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")


def parse_exercise(record: dict) -> Exercise:
    """Validate one raw record and freeze it. Raises InvalidRequest on bad vocabulary."""
    try:
        return ExerciseRecord.model_validate(record).to_exercise()
    except ValidationError as exc:
        raise InvalidRequest.from_validation_error(exc, what=f"exercise record {record.get('id', '?')}") from exc


@dataclass(frozen=True)
class ExerciseFilter:
    """Criteria for ``ExerciseIndex.filter``. ``None`` means unrestricted."""

    muscles: Optional[frozenset[MuscleGroup]] = None
    primary_only: bool = False
    available_equipment: Optional[frozenset[Equipment]] = None
    max_difficulty: Optional[Difficulty] = None
    difficulty: Optional[Difficulty] = None
    mechanics: Optional[Mechanics] = None
    types: Optional[frozenset[ExerciseType]] = None
    exclude_ids: frozenset[str] = field(default_factory=frozenset)

    def matches(self, ex: Exercise) -> bool:
        if ex.id in self.exclude_ids:
            return False
        if self.muscles:
            pool = ex.primary_muscles if self.primary_only else ex.all_muscles
            if not (pool & self.muscles):
                return False
        if self.available_equipment is not None and not ex.required_equipment <= self.available_equipment:
            return False
        if self.max_difficulty is not None and ex.difficulty.rank > self.max_difficulty.rank:
            return False
        if self.difficulty is not None and ex.difficulty is not self.difficulty:
            return False
        if self.mechanics is not None and ex.mechanics is not self.mechanics:
            return False
        if self.types and not (ex.types & self.types):
            return False
        return True


class ExerciseIndex:
    """Read-only lookup structure keyed by exercise id with reverse indices."""

    def __init__(self, exercises: Iterable[Exercise]):
        ordered = sorted(exercises, key=lambda e: (e.name.lower(), e.id))
        by_id: dict[str, Exercise] = {}
        by_slug: dict[str, str] = {}
        for ex in ordered:
            if ex.id in by_id:
                raise InvalidRequest(f"Duplicate exercise id: {ex.id}")
            by_id[ex.id] = ex
            by_slug.setdefault(ex.slug, ex.id)

        by_muscle: dict[MuscleGroup, list[str]] = {}
        by_equipment: dict[Equipment, list[str]] = {}
        by_difficulty: dict[Difficulty, list[str]] = {}
        for ex in ordered:
            for m in sorted(ex.all_muscles, key=lambda v: v.value):
                by_muscle.setdefault(m, []).append(ex.id)
            for eq in sorted(ex.equipment, key=lambda v: v.value):
                by_equipment.setdefault(eq, []).append(ex.id)
            by_difficulty.setdefault(ex.difficulty, []).append(ex.id)

        self._ordered: tuple[Exercise, ...] = tuple(ordered)
        self._by_id = MappingProxyType(by_id)
        self._by_slug = MappingProxyType(by_slug)
        self._slugs: tuple[str, ...] = tuple(by_slug.keys())
        self._by_muscle = MappingProxyType({k: tuple(v) for k, v in by_muscle.items()})
        self._by_equipment = MappingProxyType({k: tuple(v) for k, v in by_equipment.items()})
        self._by_difficulty = MappingProxyType({k: tuple(v) for k, v in by_difficulty.items()})

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "ExerciseIndex":
        return cls(parse_exercise(r) for r in records)

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[Exercise]:
        return iter(self._ordered)

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._by_id

    def get_by_id(self, exercise_id: str) -> Exercise:
        try:
            return self._by_id[exercise_id]
        except KeyError:
            raise TaxonomyLookupMiss(exercise_id) from None

    def find(self, exercise_id: str) -> Optional[Exercise]:
        return self._by_id.get(exercise_id)

    def resolve_name(self, name: str, fuzzy: bool = True, cutoff: float = 0.82) -> Optional[Exercise]:
        """Resolve a free-text exercise name (or id) to a taxonomy entry.

        Tries the id, then the exact slug, then the closest slug by difflib
        ratio. Returns None when nothing clears the cutoff.
        """
        if not name:
            return None
        text = str(name).strip()
        if text in self._by_id:
            return self._by_id[text]
        key = slugify(text)
        if not key:
            return None
        if key in self._by_slug:
            return self._by_id[self._by_slug[key]]
        if not fuzzy:
            return None
        close = get_close_matches(key, self._slugs, n=1, cutoff=cutoff)
        if close:
            return self._by_id[self._by_slug[close[0]]]
        return None

    def by_muscle(self, muscle: MuscleGroup) -> tuple[Exercise, ...]:
        return tuple(self._by_id[i] for i in self._by_muscle.get(muscle, ()))

    def by_equipment(self, equipment: Equipment) -> tuple[Exercise, ...]:
        return tuple(self._by_id[i] for i in self._by_equipment.get(equipment, ()))

    def by_difficulty(self, difficulty: Difficulty) -> tuple[Exercise, ...]:
        return tuple(self._by_id[i] for i in self._by_difficulty.get(difficulty, ()))

    def filter(
        self,
        criteria: Optional[ExerciseFilter] = None,
        score: Optional[Callable[[Exercise], float]] = None,
    ) -> list[Exercise]:
        """Return matching exercises, highest score first, ties broken by name then id."""
        criteria = criteria or ExerciseFilter()
        hits = [ex for ex in self._ordered if criteria.matches(ex)]
        if score is None:
            return hits
        return sorted(hits, key=lambda ex: (-score(ex), ex.name.lower(), ex.id))
