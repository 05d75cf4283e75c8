"""Database seeder: creates the schema and loads the built-in exercise catalogue.

Optionally adds a demo user's session history so the analytics endpoints
have something to show in local development.
"""
from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from core.db import create_schema
from core.logging_config import get_logger, setup_logging
from core.services.exercise_catalog import EXERCISE_CATALOG
from core.services.repository import SqlWorkoutRepository
from core.services.workouts import WorkoutSession

logger = get_logger(__name__)

DEMO_USER = "demo-user"

# (days ago, [(exercise_id, weight, reps, sets)])
DEMO_HISTORY = [
    (13, [("barbell-squat", 80.0, 6, 4), ("barbell-bench-press", 60.0, 6, 4), ("barbell-row", 50.0, 8, 3)]),
    (11, [("barbell-deadlift", 100.0, 5, 3), ("barbell-overhead-press", 40.0, 8, 3), ("plank", 0.0, 45, 3)]),
    (9, [("barbell-squat", 85.0, 6, 4), ("dumbbell-bench-press", 24.0, 10, 4), ("pull-up", 0.0, 8, 3)]),
    (6, [("barbell-squat", 87.5, 5, 4), ("barbell-bench-press", 62.5, 6, 4), ("dumbbell-row", 28.0, 12, 3)]),
    (4, [("barbell-deadlift", 110.0, 5, 3), ("lateral-raise", 10.0, 15, 3), ("hanging-leg-raise", 0.0, 12, 3)]),
    (2, [("barbell-squat", 90.0, 5, 4), ("barbell-bench-press", 65.0, 5, 4), ("barbell-row", 55.0, 8, 3)]),
    (1, [("burpee", 0.0, 15, 3), ("kettlebell-swing", 16.0, 15, 4), ("push-up", 0.0, 20, 3)]),
]


def demo_sessions(now: datetime | None = None) -> list[WorkoutSession]:
    now = now or datetime.now(timezone.utc)
    sessions = []
    for days_ago, work in DEMO_HISTORY:
        start = (now - timedelta(days=days_ago)).replace(hour=18, minute=0, second=0, microsecond=0)
        session = WorkoutSession(id=f"demo-{days_ago:03d}", user_id=DEMO_USER, started_at=start, name="Demo session")
        at = start
        for exercise_id, weight, reps, sets in work:
            for _ in range(sets):
                at += timedelta(minutes=3)
                session.log_set(exercise_id, weight, reps, rpe=7.5, completed_at=at)
        session.complete(ended_at=at + timedelta(minutes=5))
        sessions.append(session)
    return sessions


def seed(with_demo: bool = False) -> None:
    create_schema()
    repo = SqlWorkoutRepository()
    count = repo.save_exercises(EXERCISE_CATALOG)
    logger.info("Seeded %d exercises", count)
    if with_demo:
        existing = {s.id for s in repo.list_sessions(DEMO_USER)}
        added = 0
        for session in demo_sessions():
            if session.id not in existing:
                repo.save_session(session)
                added += 1
        logger.info("Seeded %d demo sessions for %s", added, DEMO_USER)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the schema and seed the exercise catalogue.")
    parser.add_argument("--demo", action="store_true", help="also load a demo user's session history")
    args = parser.parse_args()
    setup_logging("INFO")
    seed(with_demo=args.demo)


if __name__ == "__main__":
    main()
