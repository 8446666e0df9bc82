"""
Plan persistence: the user record and the per-user plan collection.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..db import repo
from ..errors import PersistenceFailed, PlanNotFound, UserNotFound
from ..planner.profile import UserProfile, normalize_profile
from ..planner.schema import SCHEMA_VERSION, WeeklyPlan
from ..planner.weekdays import DEFAULT_START_WEEKDAY, pick_today


def plan_display_name(goal: str | None) -> str:
    """Display name for a new plan, e.g. ``Weekly Strength Plan``."""
    nice = goal.strip().capitalize() if isinstance(goal, str) and goal.strip() else "Workout"
    return f"Weekly {nice} Plan"


class PlanStore:
    """Typed wrapper over the repository; storage errors never escape untranslated."""

    async def load_user(self, uid: str) -> dict[str, Any]:
        try:
            user = await repo.get_user(uid)
        except SQLAlchemyError as e:
            logging.exception("Failed to read user %s: %s", uid, e)
            raise PersistenceFailed("Could not read the user record.", detail=str(e)) from e
        if user is None:
            raise UserNotFound("User doc not found.")
        return user.to_dict()

    async def save_preferences(self, uid: str, preferences: dict[str, Any]) -> UserProfile:
        """Merge questionnaire answers and return the profile they normalize to."""
        try:
            user = await repo.upsert_user_preferences(uid, preferences)
        except SQLAlchemyError as e:
            logging.exception("Failed to save preferences for %s: %s", uid, e)
            raise PersistenceFailed("Could not save preferences.", detail=str(e)) from e
        logging.info("Saved preferences for uid=%s", uid)
        return normalize_profile(user.preferences)

    async def save_plan(self, uid: str, plan: WeeklyPlan) -> str:
        """
        Store a validated plan and make it the user's active plan.

        The record write completes before the active pointer is touched; the two
        writes are not atomic. If activation fails the error carries the id of
        the saved plan.
        """
        document = plan.to_document()
        try:
            plan_id = await repo.create_plan(
                uid,
                name=plan_display_name(plan.profile.goal),
                version=SCHEMA_VERSION,
                profile=document["profile"],
                week=document["week"],
                caution=document["caution"],
            )
        except SQLAlchemyError as e:
            logging.exception("Failed to store plan for uid=%s: %s", uid, e)
            raise PersistenceFailed(
                "The workout plan was generated but could not be saved.", detail=str(e)
            ) from e
        logging.info("Created workout plan %s for uid=%s", plan_id, uid)

        await self.activate(uid, plan_id)
        return plan_id

    async def activate(self, uid: str, plan_id: str) -> None:
        try:
            await repo.set_active_plan(uid, plan_id, DEFAULT_START_WEEKDAY)
        except SQLAlchemyError as e:
            logging.exception("Failed to activate plan %s for uid=%s: %s", plan_id, uid, e)
            raise PersistenceFailed(
                "The workout plan was saved but could not be made active.",
                plan_id=plan_id,
                detail=str(e),
            ) from e
        logging.info("Plan %s is now active for uid=%s", plan_id, uid)

    async def find_plan_since(self, uid: str, since: datetime, *, scan: bool = True) -> str | None:
        """
        Look for a plan created at or after ``since``.

        The active pointer is checked first. With ``scan`` the collection is
        searched as well, which catches a plan whose activation never happened;
        such a plan is activated before returning.
        """
        try:
            record = await repo.get_active_plan(uid, created_since=since)
            if record is None and scan:
                record = await repo.latest_plan_since(uid, since)
                scanned = True
            else:
                scanned = False
        except SQLAlchemyError as e:
            logging.exception("Failed to look up recent plans for uid=%s: %s", uid, e)
            raise PersistenceFailed("Could not look up recent plans.", detail=str(e)) from e
        if record is None:
            return None
        if not scanned:
            return record.id
        logging.info("Found unactivated plan %s for uid=%s; activating", record.id, uid)
        await self.activate(uid, record.id)
        return record.id

    async def list_plans(self, uid: str) -> list[dict[str, Any]]:
        try:
            records = await repo.list_plans(uid)
        except SQLAlchemyError as e:
            logging.exception("Failed to list plans for uid=%s: %s", uid, e)
            raise PersistenceFailed("Could not load workout plans.", detail=str(e)) from e
        return [r.to_dict() for r in records]

    async def active_plan(self, uid: str) -> dict[str, Any]:
        """Active plan record and today's entry in it (both may be None)."""
        try:
            user = await repo.get_user(uid)
            record = await repo.get_active_plan(uid) if user else None
        except SQLAlchemyError as e:
            logging.exception("Failed to load active plan for uid=%s: %s", uid, e)
            raise PersistenceFailed("Could not load the active plan.", detail=str(e)) from e
        if user is None:
            raise UserNotFound("User doc not found.")
        if record is None:
            return {"plan": None, "today": None}
        plan = record.to_dict()
        return {"plan": plan, "today": pick_today(plan["week"], user.plan_start_weekday)}

    async def activate_existing(self, uid: str, plan_id: str) -> dict[str, Any]:
        """Switch the active pointer to one of the user's existing plans."""
        try:
            record = await repo.get_plan(uid, plan_id)
        except SQLAlchemyError as e:
            raise PersistenceFailed("Could not load the workout plan.", detail=str(e)) from e
        if record is None:
            raise PlanNotFound("Workout plan not found.")
        await self.activate(uid, plan_id)
        return record.to_dict()

    async def rename(self, uid: str, plan_id: str, name: str) -> dict[str, Any]:
        try:
            record = await repo.rename_plan(uid, plan_id, name)
        except SQLAlchemyError as e:
            logging.exception("Failed to rename plan %s: %s", plan_id, e)
            raise PersistenceFailed("Could not rename the workout plan.", detail=str(e)) from e
        if record is None:
            raise PlanNotFound("Workout plan not found.")
        logging.info("Renamed plan %s for uid=%s", plan_id, uid)
        return record.to_dict()
