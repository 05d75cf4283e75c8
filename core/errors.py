"""Error taxonomy shared by the training core and the API layer."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError


class CoachingError(Exception):
    """Base class for every error raised by the training core."""


class InvalidRequest(CoachingError):
    """Malformed caller input. Reported to the caller, never retried."""

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_validation_error(cls, exc: ValidationError, what: str = "request") -> "InvalidRequest":
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return cls(f"Invalid {what}", errors)


class ModelError(CoachingError):
    """Anything that went wrong while talking to the external model."""


class ModelTransportError(ModelError):
    pass


class ModelTimeout(ModelError):
    pass


class ModelOutputInvalid(ModelError):
    def __init__(self, message: str, violations: Optional[list] = None):
        super().__init__(message)
        self.violations = violations or []


class TaxonomyLookupMiss(CoachingError):
    def __init__(self, exercise_id: str):
        super().__init__(f"Exercise not found in taxonomy: {exercise_id}")
        self.exercise_id = exercise_id


class DataInconsistency(CoachingError):
    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message)
        self.session_id = session_id
