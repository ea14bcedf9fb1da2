from __future__ import annotations
import datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from algorithms.math_tools import MathTools


class InvalidRowError(ValueError):
    """Raised when a stored row cannot be mapped to a canonical record."""

    def __init__(self, row: Any, reason: str) -> None:
        super().__init__(f"invalid row {row!r}: {reason}")
        self.row = row


def _first_present(data: dict, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


class SetRow(BaseModel):
    """A single logged strength set in canonical form."""

    exercise: str = "Unknown Exercise"
    weight: float = 0.0
    reps: int = 0
    sets: int = 1
    date: datetime.datetime

    @model_validator(mode="before")
    @classmethod
    def _merge_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "exercise": _first_present(data, "exercise", "exercise_name", "name")
            or "Unknown Exercise",
            "weight": data.get("weight") or 0,
            "reps": data.get("reps") or 0,
            "sets": data.get("sets") or 1,
            "date": _first_present(data, "date", "created_at"),
        }

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime.datetime:
        if value is None:
            raise ValueError("date or created_at is required")
        return MathTools.to_datetime(value)

    @field_validator("reps", "sets", mode="before")
    @classmethod
    def _whole_number(cls, value: Any) -> int:
        return int(float(value))


class RecoveryRow(BaseModel):
    """A training session tagged for recovery analysis."""

    muscle_group: Optional[str] = None
    body_parts: Optional[str] = None
    date: datetime.datetime
    intensity: str = "moderate"
    duration: float = 45

    @model_validator(mode="before")
    @classmethod
    def _merge_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "muscle_group": data.get("muscle_group"),
            "body_parts": data.get("body_parts"),
            "date": _first_present(data, "date", "created_at"),
            "intensity": data.get("intensity") or "moderate",
            "duration": _first_present(data, "duration", "estimated_time") or 45,
        }

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime.datetime:
        if value is None:
            raise ValueError("date or created_at is required")
        return MathTools.to_datetime(value)


def normalize_set_row(row: dict) -> dict:
    """Return ``row`` as a canonical set record or raise InvalidRowError."""
    try:
        return SetRow.model_validate(row).model_dump()
    except (ValidationError, TypeError) as e:
        raise InvalidRowError(row, str(e))


def normalize_recovery_row(row: dict) -> dict:
    try:
        return RecoveryRow.model_validate(row).model_dump()
    except (ValidationError, TypeError) as e:
        raise InvalidRowError(row, str(e))


def normalize_set_rows(rows: Iterable[dict]) -> list[dict]:
    return [normalize_set_row(r) for r in rows]


def normalize_recovery_rows(rows: Iterable[dict]) -> list[dict]:
    return [normalize_recovery_row(r) for r in rows]
