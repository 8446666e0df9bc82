"""
Sanitize, parse and validate raw model output into a WeeklyPlan.

Nothing here repairs model output. A plan that breaks the contract is rejected
so unsafe programming choices are never hidden by a silent patch.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from ..errors import InvalidPlanFormat, SchemaViolation
from .profile import INJURY_LOAD_TERMS, UserProfile
from .schema import WEEKDAYS, DayPlan, Exercise, WeeklyPlan

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?[ \t]*```\s*$", re.DOTALL)
_REST_NOTE_RE = re.compile(r"^\s*rest\s+day\b", re.IGNORECASE)
_BODYWEIGHT: tuple[list[str], ...] = ([], ["none"])
_INJURY_PATTERNS: dict[str, re.Pattern[str]] = {
    injury: re.compile(r"\b(?:" + "|".join(map(re.escape, terms)) + r")s?\b", re.IGNORECASE)
    for injury, terms in INJURY_LOAD_TERMS.items()
}


def strip_code_fences(text: str | None) -> str:
    """Remove a Markdown code fence wrapped around the whole payload, if any."""
    text = (text or "").strip()
    m = _FENCE_RE.match(text)
    if m:
        return m.group(1).strip()
    return text


def _format_errors(exc: ValidationError) -> list[str]:
    out: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        out.append(f"{loc}: {err.get('msg', 'invalid')}")
    return out


def _loads_area(exercise: Exercise, injury: str) -> bool:
    pattern = _INJURY_PATTERNS.get(injury)
    return pattern is not None and any(pattern.search(g) for g in exercise.muscle_groups)


def _check_exercise(
    where: str, exercise: Exercise, profile: UserProfile, problems: list[str]
) -> None:
    if exercise.equipment not in _BODYWEIGHT:
        if "none" in exercise.equipment:
            problems.append(f"{where}: equipment mixes 'none' with other items")
        missing = sorted(set(exercise.equipment) - profile.available_equipment - {"none"})
        if missing:
            problems.append(f"{where}: uses equipment not available to the user: {missing}")

    for injury in sorted(profile.active_injuries):
        if _loads_area(exercise, injury) and not exercise.substitutions:
            problems.append(f"{where}: loads the {injury} but has no substitutions")


def _check_day(index: int, day: DayPlan, profile: UserProfile, problems: list[str]) -> None:
    where = f"week.{index} ({day.day})"
    budget = profile.time_per_day_minutes
    if day.estimated_minutes > budget:
        problems.append(
            f"{where}: estimated_minutes {day.estimated_minutes} exceeds the {budget} minute budget"
        )

    if day.day_type == "rest":
        for block in ("warmup", "exercises", "cooldown"):
            if getattr(day, block) is not None:
                problems.append(f"{where}: rest day must not include {block}")
        if not (day.notes or "").strip():
            problems.append(f"{where}: rest day requires notes")
        return

    if not day.exercises:
        problems.append(f"{where}: workout day requires at least one exercise")
    if day.notes and _REST_NOTE_RE.match(day.notes):
        problems.append(f"{where}: workout day notes describe a rest day")
    block_minutes = sum(b.minutes for b in (day.warmup, day.cooldown) if b is not None)
    if block_minutes > day.estimated_minutes:
        problems.append(
            f"{where}: warmup and cooldown take {block_minutes} of {day.estimated_minutes} minutes"
        )
    for j, exercise in enumerate(day.exercises or []):
        _check_exercise(f"{where}.exercises.{j} ({exercise.name})", exercise, profile, problems)


def check_plan_invariants(plan: WeeklyPlan, profile: UserProfile | None = None) -> list[str]:
    """
    Cross-field rules the structural schema cannot express.

    Args:
        plan: A plan that already passed the schema contract
        profile: Effective profile the plan was requested for; defaults to the echo

    Returns:
        Human-readable problems, empty when the plan is acceptable
    """
    problems: list[str] = []
    effective = profile or plan.profile

    days = tuple(d.day for d in plan.week)
    if days != WEEKDAYS:
        problems.append(f"week: days must be {list(WEEKDAYS)} in order, got {list(days)}")

    if profile is not None and not plan.profile.same_as(profile):
        problems.append("profile: does not match the profile the plan was requested for")

    for i, day in enumerate(plan.week):
        _check_day(i, day, effective, problems)
    return problems


def validate_plan(data: Any, profile: UserProfile | None = None) -> WeeklyPlan:
    """
    Validate already-parsed JSON against the schema contract and cross-field rules.

    Raises:
        SchemaViolation: on any structural or cross-field problem
    """
    try:
        plan = WeeklyPlan.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        logging.warning("Plan failed schema validation: %s", errors[:10])
        raise SchemaViolation("Generated plan does not match the plan schema.", errors=errors) from e

    problems = check_plan_invariants(plan, profile)
    if problems:
        logging.warning("Plan failed cross-field checks: %s", problems[:10])
        raise SchemaViolation("Generated plan breaks plan rules.", errors=problems)
    return plan


def parse_plan(raw_text: str | None, profile: UserProfile | None = None) -> WeeklyPlan:
    """
    Turn raw completion text into a validated WeeklyPlan.

    Raises:
        InvalidPlanFormat: when the text is not JSON
        SchemaViolation: when the JSON is not an acceptable plan
    """
    if raw_text is not None and not isinstance(raw_text, str):
        logging.error("Model output has type %s, expected text", type(raw_text).__name__)
        raise InvalidPlanFormat("Failed to parse AI response into a workout plan.")
    cleaned = strip_code_fences(raw_text)
    try:
        data = json.loads(cleaned)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError is a ValueError; deeply nested input raises RecursionError
        logging.error("Failed to parse AI JSON: %s; head=%r", e, cleaned[:300])
        raise InvalidPlanFormat(
            "Failed to parse AI response into a workout plan.", detail=str(e)
        ) from e
    return validate_plan(data, profile)
