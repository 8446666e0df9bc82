"""
User training profile and the normalizer that builds it from raw preferences.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

Goal = Literal["strength", "endurance", "mobility", "weight", "tone"]
SkillLevel = Literal["beginner", "intermediate", "advanced"]
Injury = Literal["none", "knee", "shoulder", "back", "wrist", "hip"]
MobilityLevel = Literal["seated-only", "low-impact", "full-mobility"]
Equipment = Literal["none", "chair", "dumbbells", "weight-rack", "resistance-band", "yoga-mat"]

GOALS: tuple[str, ...] = get_args(Goal)
SKILL_LEVELS: tuple[str, ...] = get_args(SkillLevel)
INJURIES: tuple[str, ...] = get_args(Injury)
MOBILITY_LEVELS: tuple[str, ...] = get_args(MobilityLevel)
EQUIPMENT: tuple[str, ...] = get_args(Equipment)

DEFAULT_GOAL = "strength"
DEFAULT_SKILL_LEVEL = "beginner"
DEFAULT_MOBILITY_LEVEL = "full-mobility"
DEFAULT_MINUTES = 30
MIN_MINUTES = 5
MAX_MINUTES = 180

# Muscle-group terms that load each injured area, matched as whole words with an
# optional plural "s". An exercise touching any of these needs at least one
# substitution when the profile lists the injury.
INJURY_LOAD_TERMS: dict[str, tuple[str, ...]] = {
    "knee": (
        "knee",
        "quad",
        "quadriceps",
        "hamstring",
        "glute",
        "gluteus",
        "calf",
        "calves",
        "leg",
        "lower body",
    ),
    "shoulder": (
        "shoulder",
        "delt",
        "deltoid",
        "rotator cuff",
        "chest",
        "pec",
        "pectoral",
        "trap",
        "trapezius",
    ),
    "back": ("back", "spine", "spinal", "erector", "lat", "latissimus"),
    "wrist": ("wrist", "forearm", "grip"),
    "hip": ("hip", "glute", "gluteus", "adductor", "abductor", "groin"),
}


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    return [x for x in items if not (x in seen or seen.add(x))]


class UserProfile(BaseModel):
    """Effective profile used to prompt the model and echoed back in the plan."""

    model_config = ConfigDict(
        extra="forbid", strict=True, frozen=True, populate_by_name=True, title="Profile"
    )

    goal: Goal = DEFAULT_GOAL
    skill_level: SkillLevel = Field(DEFAULT_SKILL_LEVEL, alias="skillLevel")
    injuries: list[Injury] = Field(
        default_factory=lambda: ["none"], min_length=1, json_schema_extra={"uniqueItems": True}
    )
    mobility_level: MobilityLevel = Field(DEFAULT_MOBILITY_LEVEL, alias="mobilityLevel")
    equipment: list[Equipment] = Field(
        default_factory=lambda: ["none"], min_length=1, json_schema_extra={"uniqueItems": True}
    )
    time_per_day_minutes: int = Field(
        DEFAULT_MINUTES, ge=MIN_MINUTES, le=MAX_MINUTES, alias="timePerDayMinutes"
    )

    @field_validator("injuries", "equipment")
    @classmethod
    def _no_duplicates(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("items must be unique")
        return v

    @property
    def active_injuries(self) -> frozenset[str]:
        """Injuries other than the ``none`` marker."""
        return frozenset(i for i in self.injuries if i != "none")

    @property
    def available_equipment(self) -> frozenset[str]:
        """Equipment other than the ``none`` marker."""
        return frozenset(e for e in self.equipment if e != "none")

    @property
    def bodyweight_only(self) -> bool:
        return not self.available_equipment

    def same_as(self, other: UserProfile) -> bool:
        """Compare two profiles ignoring list order and redundant ``none`` markers."""
        return (
            self.goal == other.goal
            and self.skill_level == other.skill_level
            and self.mobility_level == other.mobility_level
            and self.time_per_day_minutes == other.time_per_day_minutes
            and self.active_injuries == other.active_injuries
            and self.available_equipment == other.available_equipment
        )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _pick_enum(data: Mapping[str, Any], key: str, allowed: tuple[str, ...], default: str) -> str:
    value = data.get(key)
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    if value is not None:
        logging.info("Profile field %s=%r is not one of %s; using %r", key, value, allowed, default)
    return default


def _pick_set(data: Mapping[str, Any], key: str, allowed: tuple[str, ...]) -> list[str]:
    value = data.get(key)
    if not isinstance(value, (list, tuple)) or not all(isinstance(x, str) for x in value):
        if value is not None:
            logging.info("Profile field %s=%r is not a list of strings; using ['none']", key, value)
        return ["none"]

    picked: list[str] = []
    for raw in value:
        item = raw.strip().lower()
        if item in allowed:
            picked.append(item)
        else:
            # free-text answers never reach the prompt
            logging.info("Dropping unsupported %s entry %r", key, raw)
    picked = _unique(picked)
    if len(picked) > 1 and "none" in picked:
        picked.remove("none")
    return picked or ["none"]


def _pick_minutes(data: Mapping[str, Any]) -> int:
    value = data.get("timePerDayMinutes")
    minutes: int | None = None
    if isinstance(value, bool):
        minutes = None
    elif isinstance(value, int):
        minutes = value
    elif isinstance(value, float) and value.is_integer():
        minutes = int(value)
    elif isinstance(value, str) and value.strip().isdecimal():
        minutes = int(value.strip())

    if minutes is None:
        if value is not None:
            logging.info(
                "Profile field timePerDayMinutes=%r is not a whole number; using %d",
                value,
                DEFAULT_MINUTES,
            )
        return DEFAULT_MINUTES

    clamped = max(MIN_MINUTES, min(minutes, MAX_MINUTES))
    if clamped != minutes:
        logging.info("Clamping timePerDayMinutes from %d to %d", minutes, clamped)
    return clamped


def normalize_profile(raw: Any) -> UserProfile:
    """
    Build a complete profile from an arbitrary preferences record.

    Each field is defaulted on its own; malformed input is logged and never
    raised, so generation is never blocked by a bad questionnaire answer.

    Args:
        raw: Loosely typed user preferences (usually the stored user document)

    Returns:
        A UserProfile that satisfies the schema contract
    """
    if raw is None:
        data: Mapping[str, Any] = {}
    elif isinstance(raw, Mapping):
        data = raw
    else:
        logging.info("Preferences record has type %s; using all defaults", type(raw).__name__)
        data = {}

    return UserProfile(
        goal=_pick_enum(data, "goal", GOALS, DEFAULT_GOAL),
        skill_level=_pick_enum(data, "skillLevel", SKILL_LEVELS, DEFAULT_SKILL_LEVEL),
        injuries=_pick_set(data, "injuries", INJURIES),
        mobility_level=_pick_enum(data, "mobilityLevel", MOBILITY_LEVELS, DEFAULT_MOBILITY_LEVEL),
        equipment=_pick_set(data, "equipment", EQUIPMENT),
        time_per_day_minutes=_pick_minutes(data),
    )
