"""
Workout plan API routes.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ...auth import current_uid
from ...services.plan_generation import PlanGenerationService
from ...services.plan_store import PlanStore

router = APIRouter()


class GeneratePlanResponse(BaseModel):
    workoutPlanId: str
    recovered: bool = False


class ActivePlanResponse(BaseModel):
    plan: dict[str, Any] | None = None
    today: dict[str, Any] | None = None


class RenamePlanRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120, pattern=r"\S")


def get_plan_service() -> PlanGenerationService:
    return PlanGenerationService()


def get_plan_store() -> PlanStore:
    return PlanStore()


@router.post("/plans/generate", response_model=GeneratePlanResponse)
async def generate_plan(
    uid: str = Depends(current_uid),
    service: PlanGenerationService = Depends(get_plan_service),
) -> Any:
    """Generate a weekly plan for the caller and make it active."""
    outcome = await service.run(uid)
    if outcome.error is not None:
        # StillPending renders as 202 so callers can poll instead of failing hard
        return JSONResponse(outcome.error.to_dict(), status_code=outcome.error.status_code)
    logging.info(
        "Generated plan %s for uid=%s (recovered=%s)", outcome.plan_id, uid, outcome.recovered
    )
    return GeneratePlanResponse(workoutPlanId=outcome.plan_id or "", recovered=outcome.recovered)


@router.get("/plans")
async def list_plans(
    uid: str = Depends(current_uid), store: PlanStore = Depends(get_plan_store)
) -> dict[str, Any]:
    """All of the caller's plans, oldest first."""
    return {"plans": await store.list_plans(uid)}


@router.get("/plans/active", response_model=ActivePlanResponse)
async def get_active_plan(
    uid: str = Depends(current_uid), store: PlanStore = Depends(get_plan_store)
) -> ActivePlanResponse:
    """The caller's active plan and today's entry in it."""
    return ActivePlanResponse(**await store.active_plan(uid))


@router.post("/plans/{plan_id}/activate")
async def activate_plan(
    plan_id: str, uid: str = Depends(current_uid), store: PlanStore = Depends(get_plan_store)
) -> dict[str, Any]:
    """Make one of the caller's existing plans the active one."""
    return {"plan": await store.activate_existing(uid, plan_id)}


@router.patch("/plans/{plan_id}")
async def rename_plan(
    plan_id: str,
    req: RenamePlanRequest,
    uid: str = Depends(current_uid),
    store: PlanStore = Depends(get_plan_store),
) -> dict[str, Any]:
    """Change a plan's display name."""
    return {"plan": await store.rename(uid, plan_id, req.name.strip())}
