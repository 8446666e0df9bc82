#!/usr/bin/env python3
"""
Reset database script for local development.
This script will drop all tables and recreate them with the correct schema.
"""

import asyncio
import os

# Set default environment variables for local development
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./local_dev.db")

from sqlalchemy import inspect

from egym_planner.db import repo
from egym_planner.db.models import Base


async def reset_database():
    """Reset the database by dropping all tables and recreating them."""
    print("🔄 Resetting database...")

    await repo.init_db()

    engine = repo._engine
    if not engine:
        print("❌ Failed to initialize database engine")
        return

    async with engine.begin() as conn:
        print("🗑️  Dropping all tables...")
        await conn.run_sync(Base.metadata.drop_all)

        print("🏗️  Creating tables from models...")
        await conn.run_sync(Base.metadata.create_all)

        print("✅ Database reset complete!")
        print("📊 Tables created:")
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        for table in tables:
            print(f"   - {table}")

    await repo.close_db()


if __name__ == "__main__":
    asyncio.run(reset_database())
