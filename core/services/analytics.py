"""Session analytics engine: streaks, personal records, volume trends.

Every function here is a pure function of the session history passed in.
Nothing is updated incrementally: each call sorts the history by
``(started_at, id)`` and recomputes from scratch, so a session backfilled
into the past is picked up exactly as if it had always been there, and two
calls over the same history return identical results.

Streaks and personal records always use the full history; the timeframe
only narrows the summary, volume buckets and distributions.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

import pandas as pd

from core.config import Settings, get_settings
from core.errors import DataInconsistency
from core.services.taxonomy import ExerciseIndex
from core.services.workouts import WorkoutSession, session_metrics
from core.validators import Timeframe

logger = logging.getLogger(__name__)

BRZYCKI_MAX_REPS = 36

TIMEFRAME_DAYS = {
    Timeframe.WEEK: 7,
    Timeframe.MONTH: 30,
    Timeframe.QUARTER: 90,
    Timeframe.YEAR: 365,
    Timeframe.ALL: None,
}

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class RecordKind(str, Enum):
    MAX_WEIGHT = "max_weight"
    MAX_REPS = "max_reps"
    MAX_VOLUME = "max_volume"
    ESTIMATED_1RM = "estimated_1rm"


class TrendClass(str, Enum):
    IMPROVING = "improving"
    PLATEAU = "plateau"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


def brzycki_1rm(weight: float, reps: int) -> Optional[float]:
    """Brzycki one-rep-max estimate, defined only for 1 <= reps < 36."""
    if weight <= 0 or reps < 1 or reps >= BRZYCKI_MAX_REPS:
        return None
    return round(weight * 36.0 / (37.0 - reps), 2)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def local_date(dt: datetime, tz: tzinfo) -> date:
    return _as_utc(dt).astimezone(tz).date()


def order_sessions(sessions: Iterable[WorkoutSession]) -> list[WorkoutSession]:
    return sorted(sessions, key=lambda s: (_as_utc(s.started_at), s.id))


def usable_sessions(sessions: Iterable[WorkoutSession]) -> tuple[list[WorkoutSession], list[str]]:
    """Drop sessions that cannot be aggregated, logging each as a data inconsistency."""
    kept: list[WorkoutSession] = []
    skipped: list[str] = []
    for s in order_sessions(sessions):
        if not any(entry.sets for entry in s.exercises):
            problem = DataInconsistency("session has no logged sets", session_id=s.id)
            logger.warning("Skipping session in analytics: %s", problem, extra={"ctx_session_id": s.id})
            skipped.append(s.id)
            continue
        kept.append(s)
    return kept, skipped


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Streaks:
    current: int
    longest: int
    cadence: str
    last_active: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "longest": self.longest,
            "cadence": self.cadence,
            "last_active": self.last_active.isoformat() if self.last_active else None,
        }


def _unit(d: date, cadence: str) -> int:
    # Ordinal 1 is a Monday, so this numbers ISO weeks consecutively.
    return (d.toordinal() - 1) // 7 if cadence == "weekly" else d.toordinal()


def compute_streaks(
    sessions: Iterable[WorkoutSession],
    cadence: str = "daily",
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> Streaks:
    """Longest and current run of consecutive active days (or ISO weeks).

    The current streak is alive only while the last active unit is the
    current or the previous one relative to ``now``; without ``now`` it is
    the run ending at the last active unit.
    """
    days = sorted({local_date(s.started_at, tz) for s in sessions})
    if not days:
        return Streaks(0, 0, cadence)

    units = sorted({_unit(d, cadence) for d in days})
    longest = run = 1
    for prev, cur in zip(units, units[1:]):
        run = run + 1 if cur == prev + 1 else 1
        longest = max(longest, run)
    current = run

    if now is not None:
        now_unit = _unit(local_date(now, tz), cadence)
        if units[-1] < now_unit - 1:
            current = 0
    return Streaks(current=current, longest=longest, cadence=cadence, last_active=days[-1])


# ---------------------------------------------------------------------------
# Personal records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PersonalRecord:
    exercise_id: str
    kind: RecordKind
    value: float
    achieved_at: datetime
    session_id: str
    previous_value: Optional[float] = None

    @property
    def improvement(self) -> Optional[float]:
        if self.previous_value is None:
            return None
        return round(self.value - self.previous_value, 2)

    @property
    def improvement_pct(self) -> Optional[float]:
        if not self.previous_value:
            return None
        return round((self.value - self.previous_value) / self.previous_value * 100.0, 1)

    def to_dict(self) -> dict:
        return {
            "exercise_id": self.exercise_id,
            "kind": self.kind.value,
            "value": self.value,
            "achieved_at": _as_utc(self.achieved_at).isoformat(),
            "session_id": self.session_id,
            "previous_value": self.previous_value,
            "improvement": self.improvement,
            "improvement_pct": self.improvement_pct,
        }


@dataclass
class _RecordBook:
    best: dict[tuple[str, RecordKind], PersonalRecord] = field(default_factory=dict)
    events: list[PersonalRecord] = field(default_factory=list)

    def offer(self, exercise_id: str, kind: RecordKind, value: Optional[float], at: datetime, session_id: str) -> None:
        if value is None or value <= 0:
            return
        value = round(float(value), 2)
        key = (exercise_id, kind)
        current = self.best.get(key)
        if current is not None and value <= current.value:
            return
        record = PersonalRecord(
            exercise_id=exercise_id,
            kind=kind,
            value=value,
            achieved_at=at,
            session_id=session_id,
            previous_value=current.value if current else None,
        )
        self.best[key] = record
        self.events.append(record)


def personal_records(
    sessions: Iterable[WorkoutSession], index: Optional[ExerciseIndex] = None
) -> tuple[list[PersonalRecord], list[PersonalRecord]]:
    """Scan the whole history for records.

    Returns ``(current_records, events)``: the best record per
    (exercise, kind) ordered by exercise then kind, and every improvement in
    chronological order. Max volume is per exercise per session; the other
    kinds are per set. Sets with 36+ reps count for max reps but not 1RM.
    With an ``index``, exercises missing from the taxonomy get no records.
    """
    book = _RecordBook()
    missing: set[str] = set()
    for session in order_sessions(sessions):
        for entry in session.exercises:
            if not entry.sets:
                continue
            if index is not None and index.find(entry.exercise_id) is None:
                missing.add(entry.exercise_id)
                continue
            for s in sorted(entry.sets, key=lambda x: _as_utc(x.completed_at)):
                book.offer(entry.exercise_id, RecordKind.MAX_WEIGHT, s.weight, s.completed_at, session.id)
                book.offer(entry.exercise_id, RecordKind.MAX_REPS, s.reps, s.completed_at, session.id)
                book.offer(entry.exercise_id, RecordKind.ESTIMATED_1RM, brzycki_1rm(s.weight, s.reps), s.completed_at, session.id)
            last = max(entry.sets, key=lambda x: _as_utc(x.completed_at))
            volume = sum(s.volume for s in entry.sets)
            book.offer(entry.exercise_id, RecordKind.MAX_VOLUME, volume, last.completed_at, session.id)

    for exercise_id in sorted(missing):
        logger.warning("Exercise missing from taxonomy; excluded from records", extra={"ctx_exercise_id": exercise_id})
    kind_order = list(RecordKind)
    records = sorted(book.best.values(), key=lambda r: (r.exercise_id, kind_order.index(r.kind)))
    return records, book.events


# ---------------------------------------------------------------------------
# Volume buckets and trend
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VolumeBucket:
    label: str
    start: date
    volume: float
    sessions: int
    change_pct: Optional[float] = None
    # False when the period is cut by the window start or still contains today.
    complete: bool = True

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "volume": self.volume,
            "sessions": self.sessions,
            "change_pct": self.change_pct,
            "complete": self.complete,
        }


@dataclass(frozen=True)
class VolumeTrend:
    bucket: str
    buckets: tuple[VolumeBucket, ...]
    change_pct: Optional[float]
    classification: TrendClass

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "buckets": [b.to_dict() for b in self.buckets],
            "change_pct": self.change_pct,
            "classification": self.classification.value,
        }


def _pct_change(old: float, new: float) -> Optional[float]:
    if old == 0:
        return None
    return round((new - old) / old * 100.0, 1)


def volume_buckets(
    sessions: Iterable[WorkoutSession],
    bucket: str,
    start: date,
    end: date,
    tz: tzinfo = timezone.utc,
) -> list[VolumeBucket]:
    """Sum volume per ISO week (``bucket="week"``) or calendar month, zero-filling gaps.

    ``end`` is treated as today: the bucket holding it, and a leading bucket
    that starts before ``start``, are marked incomplete.
    """
    freq = "W" if bucket == "week" else "M"
    rows = [{"date": local_date(s.started_at, tz), "volume": session_metrics(s).total_volume} for s in sessions]
    periods = pd.period_range(start=pd.Timestamp(start), end=pd.Timestamp(end), freq=freq)
    if rows:
        df = pd.DataFrame(rows)
        df["date"] = pd.to_datetime(df["date"])
        df["period"] = df["date"].dt.to_period(freq)
        grouped = df.groupby("period").agg(volume=("volume", "sum"), sessions=("volume", "count"))
        grouped = grouped.reindex(periods, fill_value=0)
    else:
        grouped = pd.DataFrame({"volume": 0.0, "sessions": 0}, index=periods)

    out: list[VolumeBucket] = []
    prev: Optional[float] = None
    for period, row in grouped.iterrows():
        first_day = period.start_time.date()
        if bucket == "week":
            iso = first_day.isocalendar()
            label = f"{iso[0]}-W{iso[1]:02d}"
        else:
            label = first_day.strftime("%Y-%m")
        volume = round(float(row["volume"]), 2)
        out.append(
            VolumeBucket(
                label=label,
                start=first_day,
                volume=volume,
                sessions=int(row["sessions"]),
                change_pct=_pct_change(prev, volume) if prev is not None else None,
                complete=first_day >= start and period.end_time.date() < end,
            )
        )
        prev = volume
    return out


def classify_trend(buckets: list[VolumeBucket], window: int = 4, plateau_pct: float = 5.0) -> tuple[Optional[float], TrendClass]:
    """Percentage change from the first to the last of the last ``window`` complete buckets."""
    recent = [b for b in buckets if b.complete][-max(2, window):]
    if len(recent) < 2 or not any(b.volume for b in recent):
        return None, TrendClass.INSUFFICIENT_DATA
    first, last = recent[0].volume, recent[-1].volume
    if first == 0:
        return None, (TrendClass.IMPROVING if last > 0 else TrendClass.PLATEAU)
    change = _pct_change(first, last)
    if abs(change) <= plateau_pct:
        return change, TrendClass.PLATEAU
    return change, (TrendClass.IMPROVING if change > 0 else TrendClass.DECLINING)


# ---------------------------------------------------------------------------
# Summary and distributions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AnalyticsSummary:
    total_sessions: int = 0
    total_volume: float = 0.0
    total_calories: int = 0
    average_volume: float = 0.0
    average_duration_minutes: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_sessions": self.total_sessions,
            "total_volume": self.total_volume,
            "total_calories": self.total_calories,
            "average_volume": self.average_volume,
            "average_duration_minutes": self.average_duration_minutes,
        }


def summarize(sessions: list[WorkoutSession], index: Optional[ExerciseIndex] = None) -> AnalyticsSummary:
    if not sessions:
        return AnalyticsSummary()
    metrics = [session_metrics(s, index) for s in sessions]
    volume = sum(m.total_volume for m in metrics)
    durations = [m.duration_seconds for m in metrics if m.duration_seconds]
    return AnalyticsSummary(
        total_sessions=len(sessions),
        total_volume=round(volume, 2),
        total_calories=sum(m.calories for m in metrics),
        average_volume=round(volume / len(sessions), 2),
        average_duration_minutes=round(sum(durations) / len(durations) / 60.0, 1) if durations else 0.0,
    )


def weekday_frequency(sessions: list[WorkoutSession], tz: tzinfo = timezone.utc) -> tuple[dict[str, int], Optional[str]]:
    counts = Counter(local_date(s.started_at, tz).weekday() for s in sessions)
    freq = {name: counts.get(i, 0) for i, name in enumerate(WEEKDAYS)}
    if not counts:
        return freq, None
    top = max(range(7), key=lambda i: (counts.get(i, 0), -i))
    return freq, WEEKDAYS[top]


@dataclass(frozen=True)
class MuscleShare:
    muscle: str
    sets: int
    volume: float
    percent_of_sets: float

    def to_dict(self) -> dict:
        return {"muscle": self.muscle, "sets": self.sets, "volume": self.volume, "percent_of_sets": self.percent_of_sets}


def muscle_distribution(sessions: list[WorkoutSession], index: Optional[ExerciseIndex]) -> list[MuscleShare]:
    """Sets and volume per primary muscle; exercises missing from the taxonomy are skipped."""
    if index is None:
        return []
    sets: Counter = Counter()
    volume: Counter = Counter()
    missing: set[str] = set()
    for session in sessions:
        for entry in session.exercises:
            ex = index.find(entry.exercise_id)
            if ex is None:
                missing.add(entry.exercise_id)
                continue
            for muscle in ex.primary_muscles:
                sets[muscle.value] += len(entry.sets)
                volume[muscle.value] += sum(s.volume for s in entry.sets)
    for exercise_id in sorted(missing):
        logger.warning("Exercise missing from taxonomy; excluded from distribution", extra={"ctx_exercise_id": exercise_id})
    total = sum(sets.values())
    if not total:
        return []
    shares = [
        MuscleShare(m, sets[m], round(volume[m], 2), round(sets[m] / total * 100.0, 1))
        for m in sets
    ]
    return sorted(shares, key=lambda s: (-s.sets, s.muscle))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserAnalytics:
    user_id: str
    timeframe: Timeframe
    summary: AnalyticsSummary
    streaks: Streaks
    personal_records: tuple[PersonalRecord, ...]
    pr_events: tuple[PersonalRecord, ...]
    volume_trend: VolumeTrend
    weekday_frequency: dict[str, int]
    most_active_day: Optional[str]
    muscle_distribution: tuple[MuscleShare, ...]
    skipped_sessions: tuple[str, ...] = ()

    @property
    def classification(self) -> TrendClass:
        return self.volume_trend.classification

    def best(self, exercise_id: str, kind: RecordKind) -> Optional[float]:
        for r in self.personal_records:
            if r.exercise_id == exercise_id and r.kind is kind:
                return r.value
        return None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "timeframe": self.timeframe.value,
            "summary": self.summary.to_dict(),
            "streaks": self.streaks.to_dict(),
            "personal_records": [r.to_dict() for r in self.personal_records],
            "pr_events": [r.to_dict() for r in self.pr_events],
            "volume_trend": self.volume_trend.to_dict(),
            "classification": self.classification.value,
            "weekday_frequency": dict(self.weekday_frequency),
            "most_active_day": self.most_active_day,
            "muscle_distribution": [m.to_dict() for m in self.muscle_distribution],
            "skipped_sessions": list(self.skipped_sessions),
        }


def compute_analytics(
    user_id: str,
    sessions: Iterable[WorkoutSession],
    timeframe: Timeframe | str = Timeframe.MONTH,
    now: Optional[datetime] = None,
    index: Optional[ExerciseIndex] = None,
    settings: Optional[Settings] = None,
) -> UserAnalytics:
    """Full analytics for one user's completed sessions.

    ``sessions`` may arrive in any order. A user with no history gets zeroed
    structures, never an error.
    """
    settings = settings or get_settings()
    timeframe = Timeframe(timeframe)
    tz = ZoneInfo(settings.analytics_timezone)
    now = _as_utc(now or datetime.now(timezone.utc))
    today = local_date(now, tz)

    history, skipped = usable_sessions(sessions)
    days = TIMEFRAME_DAYS[timeframe]
    if days is None:
        window = history
        start = local_date(history[0].started_at, tz) if history else today
    else:
        start = today - timedelta(days=days - 1)
        window = [s for s in history if start <= local_date(s.started_at, tz) <= today]

    bucket = "week" if timeframe in (Timeframe.WEEK, Timeframe.MONTH, Timeframe.QUARTER) else "month"
    buckets = volume_buckets(window, bucket, start, today, tz) if (window or days is not None) else []
    change, classification = classify_trend(buckets, settings.trend_window_buckets, settings.trend_plateau_pct)

    records, events = personal_records(history, index)
    freq, top_day = weekday_frequency(window, tz)

    return UserAnalytics(
        user_id=user_id,
        timeframe=timeframe,
        summary=summarize(window, index),
        streaks=compute_streaks(history, settings.streak_cadence, tz, now),
        personal_records=tuple(records),
        pr_events=tuple(events),
        volume_trend=VolumeTrend(bucket, tuple(buckets), change, classification),
        weekday_frequency=freq,
        most_active_day=top_day,
        muscle_distribution=tuple(muscle_distribution(window, index)),
        skipped_sessions=tuple(skipped),
    )
