#!/usr/bin/env python3
"""
Run one due-task scan cycle: "due today" and "big task coming up" pushes.

Schedule once a day (cron, systemd timer, or a platform scheduler):

  cd backend
  . venv/bin/activate
  python scripts/check_due_reminders.py            # today in SCAN_TIMEZONE
  python scripts/check_due_reminders.py 2026-03-01 # a specific day

Requires DATABASE_URL and FIREBASE_SERVICE_ACCOUNT (in .env or environment).
Running it twice on the same day sends the same notifications twice.
Exit 0 on success, 1 when the scan itself failed.
"""
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

# Ensure backend app is on path when run as script
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from app.infra.db import base as db_base
from app.infra.db.repositories.user_task_repo import UserTaskRepository
from app.services.dispatch_service import create_dispatch_service
from app.services.due_task_scan import DueTaskScanJob, today_in
from app.settings import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("check_due_reminders")


async def run_scan(on: date | None = None):
    s = get_settings()
    async with db_base.AsyncSessionLocal() as session:
        job = DueTaskScanJob(
            UserTaskRepository(session),
            create_dispatch_service(session, s),
            advance_days=s.scan_advance_days,
            today=lambda: today_in(s.scan_timezone),
        )
        summary = await job.run(on)
    await db_base.engine.dispose()
    return summary


def main() -> int:
    on = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        summary = asyncio.run(run_scan(on))
    except Exception as e:
        logger.error("Due-task scan failed: %s", e)
        return 1
    print(summary.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
