"""Built-in exercise catalogue.

Seeds the database and backs the taxonomy index when the database has no
exercises yet. Every record goes through ``ExerciseRecord`` validation when
the index is built, so typos in the vocabularies fail loudly at startup.
"""

from __future__ import annotations

from core.services.taxonomy import ExerciseIndex


def _ex(
    id: str,
    name: str,
    primary: list[str],
    secondary: list[str],
    equipment: list[str],
    difficulty: str,
    mechanics: str,
    types: list[str],
    pattern: str | None,
    sets: int,
    reps: int,
    rest: int,
    cal_min: float,
    cal_rep: float,
    sec_per_rep: float = 3.0,
) -> dict:
    return {
        "id": id,
        "name": name,
        "primary_muscles": primary,
        "secondary_muscles": secondary,
        "equipment": equipment,
        "difficulty": difficulty,
        "mechanics": mechanics,
        "types": types,
        "movement_pattern": pattern,
        "default_sets": sets,
        "default_reps": reps,
        "default_rest_seconds": rest,
        "calories_per_minute": cal_min,
        "calories_per_rep": cal_rep,
        "seconds_per_rep": sec_per_rep,
    }


EXERCISE_CATALOG: list[dict] = [
    # Lower body
    _ex("barbell-squat", "Barbell Squat", ["quadriceps", "glutes"], ["hamstrings", "core", "lower_back"], ["barbell"], "intermediate", "compound", ["strength", "powerlifting"], "squat", 4, 6, 150, 8.0, 0.6, 4.0),
    _ex("front-squat", "Front Squat", ["quadriceps"], ["glutes", "core"], ["barbell"], "advanced", "compound", ["strength"], "squat", 4, 6, 150, 8.0, 0.6, 4.0),
    _ex("goblet-squat", "Goblet Squat", ["quadriceps", "glutes"], ["core"], ["dumbbell"], "beginner", "compound", ["strength"], "squat", 3, 12, 60, 6.5, 0.4),
    _ex("bodyweight-squat", "Bodyweight Squats", ["quadriceps", "glutes"], ["hamstrings", "core"], ["bodyweight"], "beginner", "compound", ["strength", "cardio"], "squat", 3, 20, 30, 6.0, 0.3, 2.0),
    _ex("jump-squat", "Jump Squats", ["quadriceps", "glutes"], ["calves"], ["bodyweight"], "intermediate", "compound", ["plyometric", "cardio"], "squat", 4, 15, 45, 9.0, 0.5, 2.0),
    _ex("leg-press", "Leg Press", ["quadriceps", "glutes"], ["hamstrings"], ["machine"], "beginner", "compound", ["strength"], "squat", 3, 12, 90, 6.0, 0.5),
    _ex("barbell-deadlift", "Barbell Deadlift", ["hamstrings", "glutes", "lower_back"], ["back", "forearms", "quadriceps"], ["barbell"], "advanced", "compound", ["strength", "powerlifting"], "hinge", 3, 5, 180, 9.0, 0.8, 4.0),
    _ex("romanian-deadlift", "Romanian Deadlift", ["hamstrings", "glutes"], ["lower_back"], ["barbell"], "intermediate", "compound", ["strength"], "hinge", 3, 8, 120, 7.0, 0.6, 4.0),
    _ex("dumbbell-romanian-deadlift", "Dumbbell Romanian Deadlift", ["hamstrings", "glutes"], ["lower_back", "forearms"], ["dumbbell"], "beginner", "compound", ["strength"], "hinge", 3, 10, 90, 6.5, 0.5),
    _ex("kettlebell-swing", "Kettlebell Swing", ["glutes", "hamstrings"], ["core", "shoulders"], ["kettlebell"], "intermediate", "compound", ["strength", "cardio"], "hinge", 4, 15, 60, 10.0, 0.5, 2.0),
    _ex("hip-thrust", "Barbell Hip Thrust", ["glutes"], ["hamstrings"], ["barbell", "bench"], "intermediate", "compound", ["strength"], "hinge", 3, 10, 90, 6.0, 0.5),
    _ex("walking-lunge", "Walking Lunges", ["quadriceps", "glutes"], ["hamstrings", "calves"], ["bodyweight"], "beginner", "compound", ["strength"], "lunge", 3, 20, 60, 6.5, 0.3, 2.5),
    _ex("dumbbell-lunge", "Dumbbell Lunges", ["quadriceps", "glutes"], ["hamstrings"], ["dumbbell"], "intermediate", "compound", ["strength"], "lunge", 3, 12, 75, 7.0, 0.4),
    _ex("bulgarian-split-squat", "Bulgarian Split Squat", ["quadriceps", "glutes"], ["hamstrings", "core"], ["dumbbell", "bench"], "advanced", "compound", ["strength", "balance"], "lunge", 3, 10, 90, 7.0, 0.5),
    _ex("leg-curl", "Lying Leg Curl", ["hamstrings"], ["calves"], ["machine"], "beginner", "isolation", ["strength"], "hinge", 3, 12, 60, 4.5, 0.3),
    _ex("leg-extension", "Leg Extension", ["quadriceps"], [], ["machine"], "beginner", "isolation", ["strength"], "squat", 3, 12, 60, 4.5, 0.3),
    _ex("standing-calf-raise", "Standing Calf Raise", ["calves"], [], ["bodyweight"], "beginner", "isolation", ["strength"], None, 3, 20, 45, 4.0, 0.2, 2.0),
    # Upper body push
    _ex("barbell-bench-press", "Barbell Bench Press", ["chest"], ["triceps", "shoulders"], ["barbell", "bench"], "intermediate", "compound", ["strength", "powerlifting"], "push", 4, 6, 150, 6.5, 0.5, 4.0),
    _ex("dumbbell-bench-press", "Dumbbell Bench Press", ["chest"], ["triceps", "shoulders"], ["dumbbell", "bench"], "beginner", "compound", ["strength"], "push", 4, 10, 90, 6.0, 0.4),
    _ex("incline-dumbbell-press", "Incline Dumbbell Press", ["chest", "shoulders"], ["triceps"], ["dumbbell", "bench"], "intermediate", "compound", ["strength"], "push", 3, 10, 90, 6.0, 0.4),
    _ex("push-up", "Push-ups", ["chest"], ["triceps", "shoulders", "core"], ["bodyweight"], "beginner", "compound", ["strength"], "push", 3, 15, 45, 7.0, 0.3, 2.0),
    _ex("diamond-push-up", "Diamond Push-ups", ["triceps", "chest"], ["shoulders"], ["bodyweight"], "intermediate", "compound", ["strength"], "push", 3, 12, 60, 7.0, 0.3, 2.0),
    _ex("cable-fly", "Cable Fly", ["chest"], ["shoulders"], ["cable"], "intermediate", "isolation", ["strength"], "push", 3, 12, 60, 4.5, 0.3),
    _ex("barbell-overhead-press", "Barbell Overhead Press", ["shoulders"], ["triceps", "core"], ["barbell"], "intermediate", "compound", ["strength"], "push", 3, 8, 120, 6.0, 0.5, 4.0),
    _ex("dumbbell-shoulder-press", "Dumbbell Shoulder Press", ["shoulders"], ["triceps"], ["dumbbell"], "beginner", "compound", ["strength"], "push", 3, 12, 75, 5.5, 0.4),
    _ex("lateral-raise", "Dumbbell Lateral Raise", ["shoulders"], [], ["dumbbell"], "beginner", "isolation", ["strength"], None, 3, 15, 45, 4.0, 0.2),
    _ex("bench-dip", "Bench Dips", ["triceps"], ["chest", "shoulders"], ["bench"], "beginner", "compound", ["strength"], "push", 3, 12, 60, 5.5, 0.3, 2.5),
    _ex("cable-tricep-extension", "Cable Tricep Extension", ["triceps"], [], ["cable"], "beginner", "isolation", ["strength"], "push", 3, 15, 60, 4.0, 0.2),
    # Upper body pull
    _ex("pull-up", "Pull-ups", ["lats", "back"], ["biceps", "forearms"], ["pull_up_bar"], "advanced", "compound", ["strength"], "pull", 4, 8, 120, 8.0, 0.6),
    _ex("lat-pulldown", "Lat Pulldown", ["lats"], ["biceps", "back"], ["cable"], "beginner", "compound", ["strength"], "pull", 4, 12, 75, 5.5, 0.4),
    _ex("barbell-row", "Barbell Row", ["back", "lats"], ["biceps", "lower_back"], ["barbell"], "intermediate", "compound", ["strength"], "pull", 3, 8, 120, 7.0, 0.5, 4.0),
    _ex("dumbbell-row", "Dumbbell Rows", ["back", "lats"], ["biceps"], ["dumbbell", "bench"], "beginner", "compound", ["strength"], "pull", 3, 12, 60, 6.0, 0.4),
    _ex("band-row", "Resistance Band Row", ["back"], ["biceps"], ["resistance_band"], "beginner", "compound", ["strength"], "pull", 3, 15, 45, 4.5, 0.2),
    _ex("inverted-row", "Inverted Row", ["back", "lats"], ["biceps", "core"], ["pull_up_bar"], "intermediate", "compound", ["strength"], "pull", 3, 10, 60, 6.0, 0.4),
    _ex("face-pull", "Face Pull", ["shoulders", "back"], [], ["cable"], "beginner", "isolation", ["strength"], "pull", 3, 15, 45, 4.0, 0.2),
    _ex("cable-bicep-curl", "Cable Bicep Curl", ["biceps"], ["forearms"], ["cable"], "beginner", "isolation", ["strength"], "pull", 3, 15, 60, 4.0, 0.2),
    _ex("dumbbell-curl", "Dumbbell Bicep Curls", ["biceps"], ["forearms"], ["dumbbell"], "beginner", "isolation", ["strength"], "pull", 3, 12, 45, 4.0, 0.2),
    _ex("farmer-carry", "Farmer's Carry", ["forearms", "core"], ["shoulders", "back"], ["dumbbell"], "beginner", "compound", ["strength"], "carry", 3, 40, 60, 7.0, 0.1, 1.0),
    # Core and conditioning
    _ex("plank", "Plank Hold", ["core"], ["shoulders"], ["bodyweight"], "beginner", "isolation", ["strength", "balance"], "isometric", 3, 45, 45, 4.0, 0.05, 1.0),
    _ex("russian-twist", "Russian Twist", ["core"], [], ["bodyweight"], "beginner", "isolation", ["strength"], "rotation", 3, 20, 45, 5.0, 0.1, 1.5),
    _ex("hanging-leg-raise", "Hanging Leg Raise", ["core"], ["forearms"], ["pull_up_bar"], "advanced", "isolation", ["strength"], None, 3, 12, 60, 5.0, 0.2),
    _ex("mountain-climber", "Mountain Climbers", ["core", "full_body"], ["shoulders", "quadriceps"], ["bodyweight"], "beginner", "compound", ["cardio", "plyometric"], "locomotion", 3, 30, 30, 10.0, 0.1, 1.0),
    _ex("burpee", "Burpees", ["full_body"], ["chest", "quadriceps", "core"], ["bodyweight"], "intermediate", "compound", ["cardio", "plyometric"], "locomotion", 3, 15, 45, 12.0, 0.5, 3.0),
    _ex("jumping-jack", "Jumping Jacks", ["full_body"], ["calves", "shoulders"], ["bodyweight"], "beginner", "compound", ["cardio"], "locomotion", 3, 40, 30, 8.0, 0.1, 1.0),
    _ex("high-knees", "High Knees", ["full_body"], ["quadriceps", "core"], ["bodyweight"], "beginner", "compound", ["cardio"], "locomotion", 4, 40, 30, 9.0, 0.1, 1.0),
    _ex("jump-rope", "Jump Rope", ["calves", "full_body"], ["shoulders"], ["jump_rope"], "beginner", "compound", ["cardio"], "locomotion", 4, 60, 30, 11.0, 0.05, 1.0),
    _ex("clean-and-press", "Clean and Press", ["full_body", "shoulders"], ["quadriceps", "glutes", "back"], ["barbell"], "expert", "compound", ["strength", "olympic_weightlifting"], "push", 4, 5, 150, 10.0, 0.8, 4.0),
]


def default_index() -> ExerciseIndex:
    return ExerciseIndex.from_records(EXERCISE_CATALOG)
