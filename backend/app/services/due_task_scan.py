"""
Due-task scan: one sweep producing "due today" and "big task coming up" pushes.

Triggered externally (cron / scheduled POST); not self-scheduling. Each user with matching
tasks gets one dispatch per class. There is no dedupe ledger: running twice on the same
day sends the same notifications twice.
"""
import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from app.domain.notifications.models import (
    ADVANCE_WARNING_DIFFICULTIES,
    DueTaskRecord,
    NotificationJob,
    ScanSummary,
)
from app.domain.notifications.repositories import DueTaskQuery

logger = logging.getLogger(__name__)

DUE_TODAY_TITLE = "Reminder Due Today"
UPCOMING_TITLE = "Big Task Coming Up"
DEFAULT_TASK_TITLE = "Reminder"


def group_by_user(tasks: Iterable[DueTaskRecord]) -> "OrderedDict[str, list[DueTaskRecord]]":
    """Group tasks by assignee, skipping unassigned ones. Keeps query order."""
    grouped: "OrderedDict[str, list[DueTaskRecord]]" = OrderedDict()
    for task in tasks:
        if not task.user_id:
            continue
        grouped.setdefault(task.user_id, []).append(task)
    return grouped


def _titles(tasks: list[DueTaskRecord]) -> list[str]:
    return [t.title or DEFAULT_TASK_TITLE for t in tasks]


def due_today_body(tasks: list[DueTaskRecord]) -> str:
    titles = _titles(tasks)
    if len(titles) == 1:
        return f'Your task "{titles[0]}" is due today'
    return f"You have {len(titles)} tasks due today: {', '.join(titles)}"


def upcoming_body(tasks: list[DueTaskRecord]) -> str:
    titles = _titles(tasks)
    if len(titles) == 1:
        return f'Your task "{titles[0]}" is due next week. Make sure you have everything ready!'
    return f"You have {len(titles)} big tasks due next week: {', '.join(titles)}"


def today_in(tz_name: str) -> date:
    """Calendar date in the given zone."""
    return datetime.now(ZoneInfo(tz_name)).date()


class DueTaskScanJob:
    """Due-task scan job."""

    def __init__(
        self,
        tasks: DueTaskQuery,
        dispatcher,  # anything with async send(user_ids, title, body, data)
        *,
        advance_days: int = 7,
        today: Optional[Callable[[], date]] = None,
    ):
        self.tasks = tasks
        self.dispatcher = dispatcher
        self.advance_days = advance_days
        self._today = today or date.today

    async def run(self, on: Optional[date] = None) -> ScanSummary:
        """Run one scan cycle. Query errors propagate; per-user dispatch errors are isolated."""
        today = on or self._today()
        upcoming_day = today + timedelta(days=self.advance_days)

        due_today = await self.tasks.list_due(today)
        upcoming = await self.tasks.list_due(upcoming_day, difficulties=ADVANCE_WARNING_DIFFICULTIES)

        due_today_by_user = group_by_user(due_today)
        upcoming_by_user = group_by_user(upcoming)

        summary = ScanSummary(
            due_today_users=len(due_today_by_user),
            due_today_tasks=len(due_today),
            upcoming_users=len(upcoming_by_user),
            upcoming_tasks=len(upcoming),
        )

        for user_id, user_tasks in due_today_by_user.items():
            job = NotificationJob.for_task([user_id], DUE_TODAY_TITLE, due_today_body(user_tasks), user_tasks[0].id)
            if await self._dispatch(job, summary, "due-today"):
                summary.notifications_sent += 1

        for user_id, user_tasks in upcoming_by_user.items():
            job = NotificationJob.for_task([user_id], UPCOMING_TITLE, upcoming_body(user_tasks), user_tasks[0].id)
            if await self._dispatch(job, summary, "advance warning"):
                summary.notifications_sent += 1

        logger.info("check-due-reminders summary: %s", summary.model_dump_json())
        return summary

    async def _dispatch(self, job: NotificationJob, summary: ScanSummary, kind: str) -> bool:
        summary.dispatch_attempts += 1
        user_id = job.user_ids[0]
        try:
            await self.dispatcher.send(job.user_ids, job.title, job.body, job.data)
        except Exception as e:
            logger.error("Failed to send %s notification to %s: %s", kind, user_id, e)
            return False
        logger.info("Sent %s notification to user %s", kind, user_id)
        return True
