"""
Schema contract for a generated weekly plan.

These models are the single source of truth: the prompt embeds the JSON Schema
rendered from them and the validator enforces them directly.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

from .profile import Equipment, UserProfile

SCHEMA_VERSION = 1
SCHEMA_ID = f"urn:egym-planner:weekly-workout-plan:v{SCHEMA_VERSION}"

Weekday = Literal["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
DayType = Literal["workout", "rest"]
Modality = Literal["strength", "hypertrophy", "endurance", "mobility", "stability", "conditioning"]

WEEKDAYS: tuple[str, ...] = get_args(Weekday)
MODALITIES: tuple[str, ...] = get_args(Modality)

NonBlank = Annotated[str, Field(min_length=1, pattern=r"\S")]


class _Contract(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class Drill(_Contract):
    name: NonBlank
    details: NonBlank


class Block(_Contract):
    minutes: int = Field(ge=0, le=60)
    drills: list[Drill]


class Exercise(_Contract):
    name: NonBlank
    modality: Modality
    equipment: list[Equipment]
    muscle_groups: list[NonBlank] = Field(min_length=1)
    sets: int = Field(ge=1, le=10)
    reps_or_time: NonBlank
    intensity: NonBlank
    tempo: str
    rest_seconds: int | None = Field(None, ge=0, le=300)
    substitutions: list[NonBlank] | None = None
    form_tips: list[NonBlank] = Field(min_length=1)


class DayPlan(_Contract):
    day: Weekday
    day_type: DayType
    target_focus: str
    estimated_minutes: int = Field(ge=5, le=180)
    warmup: Block | None = None
    exercises: list[Exercise] | None = None
    cooldown: Block | None = None
    notes: str | None = None


class WeeklyPlan(_Contract):
    model_config = ConfigDict(extra="forbid", strict=True, title="WeeklyWorkoutPlan")

    caution: str = Field(min_length=10)
    profile: UserProfile
    week: list[DayPlan] = Field(min_length=7, max_length=7)

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage, omitting absent optional blocks."""
        return self.model_dump(by_alias=True, exclude_none=True)


@lru_cache(maxsize=1)
def _rendered_schema() -> str:
    schema = WeeklyPlan.model_json_schema(by_alias=True)
    return json.dumps(
        {"$schema": "https://json-schema.org/draft/2020-12/schema", "$id": SCHEMA_ID, **schema}
    )


def plan_json_schema() -> dict[str, Any]:
    """Return a fresh copy of the JSON Schema for ``WeeklyPlan``."""
    return json.loads(_rendered_schema())


def plan_json_schema_text(indent: int | None = 2) -> str:
    """Schema text suitable for embedding in a prompt."""
    return json.dumps(plan_json_schema(), indent=indent)
