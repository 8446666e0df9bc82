"""
Typed failures raised across plan generation component boundaries.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the server
layer can render it without knowing which component raised it.
"""

from __future__ import annotations

from typing import Any


class PlanError(Exception):
    """Base class for all classified plan generation failures."""

    code = "internal"
    status_code = 500

    def __init__(self, message: str, *, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": False, "error": self.code, "message": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class Unauthenticated(PlanError):
    code = "unauthenticated"
    status_code = 401


class UserNotFound(PlanError):
    code = "not_found"
    status_code = 404


class PlanNotFound(PlanError):
    code = "plan_not_found"
    status_code = 404


class GenerationFailed(PlanError):
    """Provider or transport failure; the plan was never made."""

    code = "generation_failed"
    status_code = 502


class GenerationTimedOut(PlanError):
    """
    The client stopped waiting for the provider.

    The server-side job may still have completed, so this is the trigger for
    reconciliation rather than a hard failure.
    """

    code = "deadline_exceeded"
    status_code = 504


class InvalidPlanFormat(PlanError):
    """Model output was not parseable JSON."""

    code = "invalid_plan_format"
    status_code = 500


class SchemaViolation(PlanError):
    """Model output parsed but broke the schema contract or a cross-field rule."""

    code = "schema_violation"
    status_code = 500

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message, detail=self.errors or None)


class PersistenceFailed(PlanError):
    """A store read or write failed. ``plan_id`` is set when the record was saved."""

    code = "persistence_failed"
    status_code = 500

    def __init__(self, message: str, *, plan_id: str | None = None, detail: Any = None) -> None:
        super().__init__(message, detail=detail)
        self.plan_id = plan_id

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.plan_id:
            body["workoutPlanId"] = self.plan_id
        return body


class StillPending(PlanError):
    """Reconciliation found no plan yet; the caller may poll later."""

    code = "still_pending"
    status_code = 202

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["pending"] = True
        return body
