#!/usr/bin/env python3
"""Create the cron schedules for the built-in cleanup jobs if the broker lacks them.

Usage:
  QSTASH_TOKEN=... APP_URL=https://example.com python scripts/sync_schedules.py

A schedule counts as present when one with the same job name and cron
expression already exists. Pass --prune to delete schedules for built-in
jobs whose cron no longer matches.
"""
import argparse
import asyncio
from typing import Dict, List

from jobrelay.jobs.registry import DB_CLEANUP_SESSIONS, KV_CLEANUP_MCP, KV_CLEANUP_PKCE
from jobrelay.jobs.schedules import ScheduleManager
from jobrelay.logging_config import get_logger, setup_logging
from jobrelay.schemas import Schedule

logger = get_logger("sync_schedules")

DESIRED: Dict[str, str] = {
    KV_CLEANUP_MCP: "0 * * * *",
    KV_CLEANUP_PKCE: "*/15 * * * *",
    DB_CLEANUP_SESSIONS: "30 3 * * *",
}


async def sync_schedules(manager: ScheduleManager, prune: bool = False) -> List[Schedule]:
    """Return the schedules created by this run."""
    existing = await manager.list()
    present = {(s.name, s.cron) for s in existing}

    created = []
    for name, cron in DESIRED.items():
        if (name, cron) in present:
            logger.info("schedule_present", job=name, cron=cron)
            continue
        created.append(await manager.create(name, cron))

    if prune:
        for schedule in existing:
            if schedule.name in DESIRED and schedule.cron != DESIRED[schedule.name]:
                await manager.delete(schedule.id)
                logger.info("schedule_pruned", job=schedule.name, cron=schedule.cron)
    return created


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--prune", action="store_true", help="delete stale built-in schedules")
    args = parser.parse_args()

    setup_logging()
    created = asyncio.run(sync_schedules(ScheduleManager(), prune=args.prune))
    logger.info("schedules_synced", created=len(created))


if __name__ == "__main__":
    main()
