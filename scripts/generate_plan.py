#!/usr/bin/env python3
"""
Run one plan generation for a user from the shell.

Usage:
    python scripts/generate_plan.py <uid> [--prefs '{"goal": "tone"}']
"""

import argparse
import asyncio
import json
import sys

from egym_planner.db import repo
from egym_planner.logging_setup import setup_logging
from egym_planner.services import PlanGenerationService, PlanStore


async def main(uid: str, prefs: dict | None) -> int:
    await repo.init_db()
    try:
        store = PlanStore()
        if prefs is not None:
            profile = await store.save_preferences(uid, prefs)
            print(f"📝 Saved preferences -> {profile.to_document()}")

        outcome = await PlanGenerationService(store=store).run(uid)
        print(f"🧭 States: {' -> '.join(s.value for s in outcome.history)}")
        if outcome.error is not None:
            print(f"❌ {outcome.error.code}: {outcome.error.message}")
            if outcome.error.detail:
                print(json.dumps(outcome.error.detail, indent=2, default=str))
            return 1

        suffix = " (recovered after timeout)" if outcome.recovered else ""
        print(f"✅ workoutPlanId={outcome.plan_id}{suffix}")
        return 0
    finally:
        await repo.close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawTextHelpFormatter)
    parser.add_argument("uid", help="User id")
    parser.add_argument("--prefs", help="Questionnaire answers as JSON to store first")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(main(args.uid, json.loads(args.prefs) if args.prefs else None)))
