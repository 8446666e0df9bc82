"""
Tests for plan persistence on top of a real SQLite database.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_plan
from sqlalchemy.exc import OperationalError

from egym_planner.errors import PersistenceFailed, PlanNotFound, UserNotFound
from egym_planner.planner.schema import WeeklyPlan
from egym_planner.services.plan_store import PlanStore, plan_display_name


def _plan(**profile) -> WeeklyPlan:
    data = make_plan()
    data["profile"].update(profile)
    return WeeklyPlan.model_validate(data)


def test_plan_display_name():
    assert plan_display_name("strength") == "Weekly Strength Plan"
    assert plan_display_name(None) == "Weekly Workout Plan"


@pytest.mark.asyncio
async def test_load_user_missing_is_not_found(db):
    with pytest.raises(UserNotFound):
        await PlanStore().load_user("ghost")


@pytest.mark.asyncio
async def test_save_preferences_keeps_raw_answers(db):
    store = PlanStore()

    profile = await store.save_preferences(
        "u1", {"goal": "Tone", "equipment": ["chair", "kettlebell"], "otherEquipment": "kettlebell"}
    )
    user = await store.load_user("u1")

    assert profile.goal == "tone"
    assert profile.equipment == ["chair"]
    assert user["preferences"]["otherEquipment"] == "kettlebell"
    assert user["preferences"]["equipment"] == ["chair", "kettlebell"]


@pytest.mark.asyncio
async def test_save_plan_stores_record_and_activates(db):
    store = PlanStore()
    await store.save_preferences("u1", {"goal": "endurance"})

    plan_id = await store.save_plan("u1", _plan(goal="endurance"))

    user = await store.load_user("u1")
    assert user["activePlanId"] == plan_id
    assert user["planStartWeekday"] == "Mon"
    [stored] = await store.list_plans("u1")
    assert stored["id"] == plan_id
    assert stored["name"] == "Weekly Endurance Plan"
    assert stored["version"] == 1
    assert len(stored["week"]) == 7
    assert stored["profile"]["goal"] == "endurance"
    assert stored["createdAt"].endswith("+00:00")


@pytest.mark.asyncio
async def test_save_plan_write_failure(db):
    with patch(
        "egym_planner.services.plan_store.repo.create_plan",
        AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk full"))),
    ):
        with pytest.raises(PersistenceFailed) as exc:
            await PlanStore().save_plan("u1", _plan())
    assert exc.value.plan_id is None


@pytest.mark.asyncio
async def test_activation_failure_carries_plan_id(db):
    store = PlanStore()
    await store.save_preferences("u1", {})
    with patch(
        "egym_planner.services.plan_store.repo.set_active_plan",
        AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("locked"))),
    ):
        with pytest.raises(PersistenceFailed) as exc:
            await store.save_plan("u1", _plan())

    assert exc.value.plan_id
    assert exc.value.to_dict()["workoutPlanId"] == exc.value.plan_id
    assert [p["id"] for p in await store.list_plans("u1")] == [exc.value.plan_id]


@pytest.mark.asyncio
async def test_find_plan_since_uses_active_pointer(db):
    store = PlanStore()
    await store.save_preferences("u1", {})
    started = datetime.now(UTC)
    plan_id = await store.save_plan("u1", _plan())

    assert await store.find_plan_since("u1", started, scan=False) == plan_id
    later = datetime.now(UTC) + timedelta(minutes=1)
    assert await store.find_plan_since("u1", later) is None


@pytest.mark.asyncio
async def test_find_plan_since_scan_activates_orphan(db):
    store = PlanStore()
    await store.save_preferences("u1", {})
    started = datetime.now(UTC)
    orphan = await db.create_plan(
        "u1", name="Weekly Strength Plan", version=1, profile={}, week=[], caution="x" * 10
    )

    assert await store.find_plan_since("u1", started, scan=False) is None
    assert await store.find_plan_since("u1", started, scan=True) == orphan
    assert (await store.load_user("u1"))["activePlanId"] == orphan


@pytest.mark.asyncio
async def test_active_plan_with_today(db):
    store = PlanStore()
    await store.save_preferences("u1", {})
    assert await store.active_plan("u1") == {"plan": None, "today": None}

    plan_id = await store.save_plan("u1", _plan())
    result = await store.active_plan("u1")

    assert result["plan"]["id"] == plan_id
    assert result["today"] in result["plan"]["week"]


@pytest.mark.asyncio
async def test_activate_existing_and_rename(db):
    store = PlanStore()
    await store.save_preferences("u1", {})
    first = await store.save_plan("u1", _plan())
    second = await store.save_plan("u1", _plan())
    assert (await store.load_user("u1"))["activePlanId"] == second

    await store.activate_existing("u1", first)
    assert (await store.load_user("u1"))["activePlanId"] == first

    renamed = await store.rename("u1", first, "Base block")
    assert renamed["name"] == "Base block"

    with pytest.raises(PlanNotFound):
        await store.activate_existing("u2", first)
    with pytest.raises(PlanNotFound):
        await store.rename("u1", "missing", "x")
