"""
SQLAlchemy ORM models for the user record and plan collection.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def new_plan_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """User record: raw questionnaire preferences plus the active plan pointer."""

    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    active_plan_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    plan_start_weekday: Mapped[str] = mapped_column(String(3), default="Mon")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    plans: Mapped[list[WorkoutPlan]] = relationship("WorkoutPlan", back_populates="user")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "preferences": dict(self.preferences or {}),
            "activePlanId": self.active_plan_id,
            "planStartWeekday": self.plan_start_weekday,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} active_plan_id={self.active_plan_id}>"


class WorkoutPlan(Base):
    """A generated weekly plan. Append-only apart from the display name."""

    __tablename__ = "workout_plans"
    __table_args__ = (Index("ix_workout_plans_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_plan_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    version: Mapped[int] = mapped_column(Integer, default=1)
    profile: Mapped[dict[str, Any]] = mapped_column(JSON)
    week: Mapped[list[Any]] = mapped_column(JSON)
    caution: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    user: Mapped[User] = relationship("User", back_populates="plans")

    def to_dict(self) -> dict[str, Any]:
        created = _as_utc(self.created_at)
        updated = _as_utc(self.updated_at)
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "caution": self.caution,
            "profile": self.profile,
            "week": self.week,
            "createdAt": created.isoformat() if created else None,
            "updatedAt": updated.isoformat() if updated else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<WorkoutPlan id={self.id} user_id={self.user_id} name={self.name}>"
