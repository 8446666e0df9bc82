"""
Async SQLAlchemy repository for user records and the plan collection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from functools import wraps
from importlib import resources
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import SETTINGS
from .models import Base, User, WorkoutPlan

_engine: AsyncEngine | None = None
_session: async_sessionmaker[AsyncSession] | None = None

# Type variable for the retry decorator
F = TypeVar("F", bound=Callable[..., Any])


def retry_on_connection_error(max_retries: int = 3, delay: float = 0.1):
    """
    Decorator to retry database operations on connection errors.
    Useful for handling transient connection issues.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    # Check if it's a connection-related error
                    if any(
                        keyword in str(e).lower()
                        for keyword in [
                            "connection",
                            "server closed",
                            "connection closed",
                            "operationalerror",
                            "timeout",
                        ]
                    ):
                        last_exception = e
                        if attempt < max_retries - 1:
                            # Exponential backoff
                            wait_time = delay * (2**attempt)
                            logging.warning(
                                "Database connection error on attempt %d/%d, retrying in %.2fs: %s",
                                attempt + 1,
                                max_retries,
                                wait_time,
                                e,
                            )
                            await asyncio.sleep(wait_time)
                            continue
                    raise
            if last_exception:
                raise last_exception
            raise RuntimeError("Retry mechanism failed unexpectedly")

        return wrapper  # type: ignore

    return decorator


def _prepare_url(url: str) -> tuple[str, dict]:
    """Return sanitized DB URL and connect args.

    Extracts common SSL query parameters and passes them as ``connect_args``.
    ``ssl=false`` becomes ``sslmode=disable``.
    """

    url_obj = make_url(url)
    query = dict(url_obj.query)
    connect_args: dict[str, object] = {}

    sslmode = query.pop("sslmode", None)
    ssl_val = query.pop("ssl", None)
    if ssl_val is not None:
        sslmode = "disable" if str(ssl_val).lower() in {"0", "false", "off", "no"} else "require"

    driver = url_obj.drivername or ""
    if driver.startswith("postgresql+asyncpg"):
        if sslmode:
            # asyncpg takes ``ssl`` rather than libpq's ``sslmode``
            connect_args["ssl"] = sslmode
        connect_args.setdefault("statement_cache_size", 0)  # PgBouncer friendly
    elif driver.startswith("postgresql+psycopg"):
        if sslmode:
            connect_args["sslmode"] = sslmode
        connect_args.setdefault("prepare_threshold", 0)
    elif sslmode:
        connect_args["sslmode"] = sslmode

    url_obj = url_obj.set(query=query)
    return url_obj.render_as_string(hide_password=False), connect_args


def _is_memory_sqlite(db_url: str) -> bool:
    url_obj = make_url(db_url)
    return url_obj.drivername.startswith("sqlite") and (
        url_obj.database in {":memory:", "", None} or ":memory:" in db_url
    )


def _migration_files() -> list[Any]:
    try:
        pkg_migrations = resources.files("egym_planner").joinpath("migrations")
        if pkg_migrations.is_dir():
            return sorted(
                (p for p in pkg_migrations.iterdir() if p.name.endswith(".sql")),
                key=lambda p: p.name,
            )
    except (ModuleNotFoundError, FileNotFoundError):
        pass
    return []


async def _run_migrations(conn: Any, paths: list[Any]) -> None:
    """Execute bundled .sql migration files sequentially."""
    for path in paths:
        sql = path.read_text(encoding="utf-8")
        for stmt in sql.split(";"):
            stmt = stmt.strip()
            if stmt:
                await conn.run_sync(lambda sync_conn, s=stmt: sync_conn.exec_driver_sql(s))  # type: ignore
        logging.info("Applied migration %s", path.name)


async def init_db() -> None:
    """
    Initialize the async database engine and sessionmaker, and create tables if needed.
    """
    global _engine, _session
    if _engine:
        return
    if not SETTINGS.DATABASE_URL:
        logging.error("DATABASE_URL is required for DB initialization.")
        raise RuntimeError("DATABASE_URL is required")
    db_url, connect_args = _prepare_url(SETTINGS.DATABASE_URL)
    memory = _is_memory_sqlite(db_url)

    engine_kwargs: dict[str, Any] = {"echo": False, "connect_args": connect_args}
    if not db_url.startswith("sqlite"):
        engine_kwargs.update(
            pool_pre_ping=True,
            pool_recycle=3600,  # Recycle connections every hour
            pool_timeout=30,  # Wait up to 30 seconds for available connection
            max_overflow=10,
            pool_size=20,
        )
    _engine = create_async_engine(db_url, **engine_kwargs)
    _session = async_sessionmaker(_engine, expire_on_commit=False)
    async with _engine.begin() as conn:
        # In-memory SQLite skips migrations and creates tables from models
        migrations = [] if memory else _migration_files()
        if migrations:
            await _run_migrations(conn, migrations)
        else:
            await conn.run_sync(Base.metadata.create_all)


def get_session() -> async_sessionmaker[AsyncSession]:
    """
    Get the async sessionmaker. Raises if DB is not initialized.
    """
    if not _session:
        raise RuntimeError("DB not initialized; call init_db() first")
    return _session


async def close_db() -> None:
    """Dispose of the database engine and reset session state."""

    global _engine, _session
    if _engine:
        await _engine.dispose()
    _engine = None
    _session = None


@retry_on_connection_error()
async def get_user(uid: str) -> User | None:
    """Get a user record by caller uid."""
    sessmaker = get_session()
    async with sessmaker() as s:
        return await s.get(User, uid)


async def upsert_user_preferences(uid: str, preferences: dict[str, Any]) -> User:
    """Merge raw questionnaire fields into the user record, creating it if needed."""
    sessmaker = get_session()
    async with sessmaker() as s:
        user = await s.get(User, uid)
        if user is None:
            user = User(id=uid, preferences=dict(preferences))
            s.add(user)
        else:
            merged = dict(user.preferences or {})
            merged.update(preferences)
            user.preferences = merged
            user.updated_at = datetime.now(UTC)
        await s.commit()
        return user


async def create_plan(
    uid: str,
    *,
    name: str,
    version: int,
    profile: dict[str, Any],
    week: list[Any],
    caution: str,
) -> str:
    """Append a plan record to the user's collection and return its id."""
    sessmaker = get_session()
    async with sessmaker() as s:
        now = datetime.now(UTC)
        record = WorkoutPlan(
            user_id=uid,
            name=name,
            version=version,
            profile=profile,
            week=week,
            caution=caution,
            created_at=now,
            updated_at=now,
        )
        s.add(record)
        await s.commit()
        return record.id


async def set_active_plan(uid: str, plan_id: str, start_weekday: str = "Mon") -> None:
    """Point the user's active plan at ``plan_id``. Last write wins."""
    sessmaker = get_session()
    async with sessmaker() as s:
        user = await s.get(User, uid)
        if user is None:
            user = User(id=uid, preferences={})
            s.add(user)
        user.active_plan_id = plan_id
        user.plan_start_weekday = start_weekday
        user.updated_at = datetime.now(UTC)
        await s.commit()


@retry_on_connection_error()
async def get_plan(uid: str, plan_id: str) -> WorkoutPlan | None:
    """Get one plan, scoped to its owner."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(
            select(WorkoutPlan).where(WorkoutPlan.id == plan_id, WorkoutPlan.user_id == uid)
        )
        return res.scalar_one_or_none()


@retry_on_connection_error()
async def list_plans(uid: str) -> list[WorkoutPlan]:
    """All of a user's plans, oldest first."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(
            select(WorkoutPlan)
            .where(WorkoutPlan.user_id == uid)
            .order_by(WorkoutPlan.created_at.asc(), WorkoutPlan.id.asc())
        )
        return list(res.scalars().all())


@retry_on_connection_error()
async def get_active_plan(uid: str, created_since: datetime | None = None) -> WorkoutPlan | None:
    """
    Return the plan the user's active pointer refers to.

    With ``created_since`` the plan is only returned when it was created at or
    after that moment.
    """
    sessmaker = get_session()
    async with sessmaker() as s:
        user = await s.get(User, uid)
        if user is None or not user.active_plan_id:
            return None
        stmt = select(WorkoutPlan).where(
            WorkoutPlan.id == user.active_plan_id, WorkoutPlan.user_id == uid
        )
        if created_since is not None:
            stmt = stmt.where(WorkoutPlan.created_at >= created_since)
        res = await s.execute(stmt)
        return res.scalar_one_or_none()


@retry_on_connection_error()
async def latest_plan_since(uid: str, since: datetime) -> WorkoutPlan | None:
    """Newest plan in the user's collection created at or after ``since``."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(
            select(WorkoutPlan)
            .where(WorkoutPlan.user_id == uid, WorkoutPlan.created_at >= since)
            .order_by(WorkoutPlan.created_at.desc())
            .limit(1)
        )
        return res.scalar_one_or_none()


async def rename_plan(uid: str, plan_id: str, name: str) -> WorkoutPlan | None:
    """Change a plan's display name. Returns None when the plan is not the user's."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(
            select(WorkoutPlan).where(WorkoutPlan.id == plan_id, WorkoutPlan.user_id == uid)
        )
        record = res.scalar_one_or_none()
        if record is None:
            return None
        record.name = name
        record.updated_at = datetime.now(UTC)
        await s.commit()
        return record
