"""
Plan generation building blocks: profile, schema contract, prompts, validation.
"""

from .profile import UserProfile, normalize_profile
from .prompts import build_messages
from .sanitize import check_plan_invariants, parse_plan, strip_code_fences, validate_plan
from .schema import SCHEMA_VERSION, WEEKDAYS, DayPlan, WeeklyPlan, plan_json_schema

__all__ = [
    "SCHEMA_VERSION",
    "WEEKDAYS",
    "DayPlan",
    "UserProfile",
    "WeeklyPlan",
    "build_messages",
    "check_plan_invariants",
    "normalize_profile",
    "parse_plan",
    "plan_json_schema",
    "strip_code_fences",
    "validate_plan",
]
