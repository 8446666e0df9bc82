import copy
import os

import pytest
import pytest_asyncio

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "sk-test-0000000000000000")
os.environ.setdefault("AUTH_SECRET", "test-auth-secret")

from egym_planner.db import repo  # noqa: E402

BASE_PROFILE = {
    "goal": "strength",
    "skillLevel": "beginner",
    "injuries": ["none"],
    "mobilityLevel": "full-mobility",
    "equipment": ["none"],
    "timePerDayMinutes": 30,
}

WORKOUT_DAYS = {"Mon", "Wed", "Fri"}


def make_exercise(**overrides) -> dict:
    exercise = {
        "name": "Push-up",
        "modality": "strength",
        "equipment": ["none"],
        "muscle_groups": ["chest", "triceps"],
        "sets": 3,
        "reps_or_time": "8-10",
        "intensity": "RPE 7",
        "tempo": "2-0-1",
        "rest_seconds": 90,
        "form_tips": ["Keep a straight line from head to heels"],
    }
    exercise.update(overrides)
    return exercise


def make_day(day: str, workout: bool) -> dict:
    if not workout:
        return {
            "day": day,
            "day_type": "rest",
            "target_focus": "Recovery",
            "estimated_minutes": 10,
            "notes": "Rest day.",
        }
    return {
        "day": day,
        "day_type": "workout",
        "target_focus": "Full body",
        "estimated_minutes": 30,
        "warmup": {
            "minutes": 5,
            "drills": [{"name": "Arm circles", "details": "30 seconds each direction"}],
        },
        "exercises": [make_exercise()],
        "cooldown": {
            "minutes": 5,
            "drills": [{"name": "Child's pose", "details": "Hold for 60 seconds"}],
        },
        "notes": "Keep every rep controlled.",
    }


def make_plan(profile: dict | None = None) -> dict:
    """A valid bodyweight plan: workouts Mon/Wed/Fri, rest on the other days."""
    return {
        "caution": "Consult a professional if you are unsure or injured.",
        "profile": copy.deepcopy(profile or BASE_PROFILE),
        "week": [
            make_day(d, d in WORKOUT_DAYS) for d in ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
        ],
    }


@pytest.fixture
def plan_dict() -> dict:
    return make_plan()


@pytest.fixture
def base_profile() -> dict:
    return copy.deepcopy(BASE_PROFILE)


@pytest_asyncio.fixture
async def db(tmp_path):
    """A fresh file-backed SQLite database with migrations applied."""
    original_url = repo.SETTINGS.DATABASE_URL
    await repo.close_db()
    repo.SETTINGS.DATABASE_URL = f"sqlite+aiosqlite:///{tmp_path / 'planner.db'}"
    await repo.init_db()
    try:
        yield repo
    finally:
        await repo.close_db()
        repo.SETTINGS.DATABASE_URL = original_url
