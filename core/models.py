from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class ExerciseRow(Base):
    __tablename__ = "exercises"
    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)
    primary_muscles: Mapped[list[str]] = mapped_column(JSON)
    secondary_muscles: Mapped[list[str]] = mapped_column(JSON, default=list)
    equipment: Mapped[list[str]] = mapped_column(JSON)
    difficulty: Mapped[str] = mapped_column(String(20), index=True)
    mechanics: Mapped[str] = mapped_column(String(20))
    types: Mapped[list[str]] = mapped_column(JSON)
    movement_pattern: Mapped[str | None] = mapped_column(String(20))
    default_sets: Mapped[int] = mapped_column(Integer, default=3)
    default_reps: Mapped[int] = mapped_column(Integer, default=10)
    default_rest_seconds: Mapped[int] = mapped_column(Integer, default=60)
    calories_per_minute: Mapped[float] = mapped_column(Float, default=5.0)
    calories_per_rep: Mapped[float] = mapped_column(Float, default=0.3)
    seconds_per_rep: Mapped[float] = mapped_column(Float, default=3.0)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "primary_muscles": self.primary_muscles,
            "secondary_muscles": self.secondary_muscles or [],
            "equipment": self.equipment,
            "difficulty": self.difficulty,
            "mechanics": self.mechanics,
            "types": self.types,
            "movement_pattern": self.movement_pattern,
            "default_sets": self.default_sets,
            "default_reps": self.default_reps,
            "default_rest_seconds": self.default_rest_seconds,
            "calories_per_minute": self.calories_per_minute,
            "calories_per_rep": self.calories_per_rep,
            "seconds_per_rep": self.seconds_per_rep,
        }


class WorkoutSessionRow(Base):
    __tablename__ = "workout_sessions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(180), default="")
    status: Mapped[str] = mapped_column(String(20), default="in_progress")
    started_at: Mapped[dt.datetime] = mapped_column(DateTime)
    ended_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    exercises: Mapped[list["SessionExerciseRow"]] = relationship(
        back_populates="session",
        order_by="SessionExerciseRow.position",
        cascade="all, delete-orphan",
    )
    __table_args__ = (
        Index("ix_workout_sessions_user_started", "user_id", "started_at"),
        CheckConstraint("status in ('in_progress', 'completed', 'cancelled')"),
    )


class SessionExerciseRow(Base):
    __tablename__ = "session_exercises"
    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("workout_sessions.id"), index=True)
    exercise_id: Mapped[str] = mapped_column(String(80), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    session: Mapped[WorkoutSessionRow] = relationship(back_populates="exercises")
    sets: Mapped[list["SessionSetRow"]] = relationship(
        back_populates="entry",
        order_by="SessionSetRow.position",
        cascade="all, delete-orphan",
    )


class SessionSetRow(Base):
    __tablename__ = "session_sets"
    id: Mapped[int] = mapped_column(primary_key=True)
    session_exercise_id: Mapped[int] = mapped_column(ForeignKey("session_exercises.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    weight: Mapped[float] = mapped_column(Float, default=0)
    reps: Mapped[int] = mapped_column(Integer)
    rpe: Mapped[float | None] = mapped_column(Float)
    completed_at: Mapped[dt.datetime] = mapped_column(DateTime)
    entry: Mapped[SessionExerciseRow] = relationship(back_populates="sets")
    __table_args__ = (
        CheckConstraint("reps >= 0"),
        CheckConstraint("weight >= 0"),
        CheckConstraint("rpe is null or rpe between 1 and 10"),
    )
