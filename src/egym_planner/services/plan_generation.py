"""
Plan generation orchestrator with timeout reconciliation.

One call maps to one completion request. The request, validation and save run
as a background job; the caller only waits ``GENERATION_TIMEOUT_SECONDS`` for
it. When that wait runs out the job keeps going and stores the plan later,
which is what reconciliation and later reads of the active plan pick up.

Concurrent generations for the same user are not deduplicated: both may
persist and the later active-pointer write wins. That race is accepted.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..config import SETTINGS
from ..errors import (
    GenerationFailed,
    GenerationTimedOut,
    InvalidPlanFormat,
    PersistenceFailed,
    PlanError,
    SchemaViolation,
    StillPending,
    Unauthenticated,
)
from ..planner.profile import UserProfile, normalize_profile
from ..planner.prompts import build_messages
from ..planner.sanitize import parse_plan
from .openai_service import OpenAIService
from .plan_store import PlanStore

# Strong references to in-flight jobs so abandoned ones are not garbage collected
_jobs: set[asyncio.Task[str]] = set()


def _job_done(task: asyncio.Task[str]) -> None:
    _jobs.discard(task)
    if task.cancelled():
        logging.warning("Plan generation job %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logging.warning("Plan generation job %s ended with %r", task.get_name(), exc)


async def drain_pending_jobs(timeout: float | None = None) -> None:
    """Wait for in-flight generation jobs, e.g. before shutting the database down."""
    if _jobs:
        logging.info("Waiting for %d plan generation job(s)", len(_jobs))
        await asyncio.wait(set(_jobs), timeout=timeout)


class GenerationState(str, enum.Enum):
    GENERATING = "generating"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    RECOVERING = "recovering"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GenerationOutcome:
    """Terminal result of one generation call."""

    uid: str | None
    state: GenerationState = GenerationState.GENERATING
    plan_id: str | None = None
    error: PlanError | None = None
    recovered: bool = False
    history: list[GenerationState] = field(default_factory=list)
    # set once the caller stopped waiting; the job no longer reports into the outcome
    detached: bool = field(default=False, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.state is GenerationState.SUCCEEDED


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PlanGenerationService:
    """Runs normalize -> prompt -> complete -> validate -> persist, reconciling on timeout."""

    def __init__(
        self,
        client: OpenAIService | None = None,
        store: PlanStore | None = None,
        *,
        recovery_scan: bool | None = None,
        timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client or OpenAIService()
        self.store = store or PlanStore()
        self.recovery_scan = SETTINGS.FF_RECOVERY_SCAN if recovery_scan is None else recovery_scan
        self.timeout = timeout or SETTINGS.GENERATION_TIMEOUT_SECONDS
        self.clock = clock

    def _move(self, outcome: GenerationOutcome, state: GenerationState) -> None:
        if outcome.detached and state in (GenerationState.VALIDATING, GenerationState.PERSISTING):
            logging.info("Detached plan generation uid=%s: %s", outcome.uid, state.value)
            return
        logging.info(
            "Plan generation uid=%s: %s -> %s", outcome.uid, outcome.state.value, state.value
        )
        outcome.state = state
        outcome.history.append(state)

    def _fail(self, outcome: GenerationOutcome, error: PlanError) -> GenerationOutcome:
        outcome.error = error
        self._move(outcome, GenerationState.FAILED)
        logging.warning("Plan generation failed uid=%s: %s (%s)", outcome.uid, error.code, error)
        return outcome

    async def _produce(
        self, outcome: GenerationOutcome, profile: UserProfile, messages: list[dict[str, str]]
    ) -> str:
        """Complete, validate and store one plan. Runs to the end even if nobody waits."""
        raw = await self.client.complete(messages)
        self._move(outcome, GenerationState.VALIDATING)
        plan = parse_plan(raw, profile)
        self._move(outcome, GenerationState.PERSISTING)
        plan_id = await self.store.save_plan(outcome.uid or "", plan)
        if outcome.detached:
            logging.info("Detached generation stored plan %s for uid=%s", plan_id, outcome.uid)
        return plan_id

    async def run(self, uid: str | None) -> GenerationOutcome:
        """
        Generate, validate and persist a plan for ``uid``.

        Never raises ``PlanError``; the outcome carries the terminal state and,
        on failure, the classified error.
        """
        outcome = GenerationOutcome(uid=uid)
        if not uid:
            return self._fail(outcome, Unauthenticated("User must be signed in."))

        try:
            user = await self.store.load_user(uid)
        except PlanError as e:
            return self._fail(outcome, e)

        profile = normalize_profile(user.get("preferences"))
        logging.info("generateWorkoutPlan profile uid=%s: %s", uid, profile.to_document())
        messages = build_messages(profile)

        started_at = self.clock()
        outcome.history.append(GenerationState.GENERATING)
        job = asyncio.create_task(
            self._produce(outcome, profile, messages), name=f"generate-plan-{uid}"
        )
        _jobs.add(job)
        job.add_done_callback(_job_done)

        try:
            outcome.plan_id = await asyncio.wait_for(asyncio.shield(job), timeout=self.timeout)
        except TimeoutError:
            # only the wait is abandoned; the job keeps running and saves the plan
            outcome.detached = True
            logging.warning(
                "Stopped waiting for plan generation uid=%s after %.0fs", uid, self.timeout
            )
            self._move(outcome, GenerationState.RECOVERING)
            return await self._recover(outcome, started_at)
        except GenerationTimedOut:
            self._move(outcome, GenerationState.RECOVERING)
            return await self._recover(outcome, started_at)
        except (GenerationFailed, InvalidPlanFormat, SchemaViolation, PersistenceFailed) as e:
            return self._fail(outcome, e)

        self._move(outcome, GenerationState.SUCCEEDED)
        return outcome

    async def _recover(self, outcome: GenerationOutcome, started_at: datetime) -> GenerationOutcome:
        uid = outcome.uid or ""
        try:
            plan_id = await self.store.find_plan_since(uid, started_at, scan=self.recovery_scan)
        except PersistenceFailed as e:
            logging.warning("Reconciliation lookup failed for uid=%s: %s", uid, e)
            plan_id = None

        if plan_id is None:
            return self._fail(
                outcome,
                StillPending(
                    "Your workout plan is still being generated. Check back shortly.",
                    detail={"startedAt": started_at.isoformat()},
                ),
            )

        logging.info("Recovered plan %s for uid=%s after timeout", plan_id, uid)
        outcome.plan_id = plan_id
        outcome.recovered = True
        self._move(outcome, GenerationState.SUCCEEDED)
        return outcome

    async def generate(self, uid: str | None) -> str:
        """Return the new (or recovered) plan id, raising the classified error on failure."""
        outcome = await self.run(uid)
        if outcome.error is not None:
            raise outcome.error
        if outcome.plan_id is None:
            raise PersistenceFailed("Plan generation finished without a stored plan.")
        return outcome.plan_id
