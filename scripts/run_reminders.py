#!/usr/bin/env python3
"""
ApplyTrack - Run reminder jobs once

Runs interview, deadline and follow-up reminders, the stalled application
digest and ghosted detection, then prints the summaries. Meant for cron
when the in-process reminder loop is disabled.

Usage:
    python scripts/run_reminders.py
"""
import asyncio
import json
import sys
import os

# Add project root to path so we can import applytrack modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from applytrack.database import get_resilient_session, init_db
from applytrack.services.reminders import run_all


async def main():
    init_db()
    with get_resilient_session() as db:
        result = await run_all(db)
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
