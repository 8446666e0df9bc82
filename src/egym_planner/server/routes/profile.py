"""
Questionnaire preferences route.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ...auth import current_uid
from ...services.plan_store import PlanStore
from .plans import get_plan_store

router = APIRouter()


@router.put("/profile")
async def save_profile(
    preferences: dict[str, Any] = Body(...),
    uid: str = Depends(current_uid),
    store: PlanStore = Depends(get_plan_store),
) -> dict[str, Any]:
    """
    Store raw questionnaire answers as given and echo the profile they map to.

    Answers are kept verbatim; normalization happens at generation time.
    """
    profile = await store.save_preferences(uid, preferences)
    return {"ok": True, "profile": profile.to_document()}
