"""
Event-triggered notifications: one recipient per domain event, best effort.

Call these from the reminder CRUD surface (create, reassign, complete) instead of
dispatching directly. Delivery failures are logged and swallowed so the domain action
that triggered them always succeeds.
"""
import logging
from typing import Any, Optional

from app.domain.notifications.models import DeliverySummary, NotificationJob

logger = logging.getLogger(__name__)


class BestEffortDispatcher:
    """Wraps a dispatcher; catches and logs, never propagates."""

    def __init__(self, dispatcher):
        self.dispatcher = dispatcher

    async def send(
        self,
        user_ids: list[str],
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[DeliverySummary]:
        """Returns the delivery summary, or None when dispatch failed."""
        try:
            return await self.dispatcher.send(user_ids, title, body, data)
        except Exception as e:
            logger.warning("Push send failed for users %s: %s", user_ids, e)
            return None

    async def send_job(self, job: NotificationJob) -> Optional[DeliverySummary]:
        return await self.send(job.user_ids, job.title, job.body, job.data)


class ReminderEventNotifier:
    """Translates reminder domain events into single-recipient dispatches."""

    def __init__(self, dispatcher: BestEffortDispatcher):
        self.dispatcher = dispatcher

    async def _notify(self, actor_id: Optional[str], recipient_id: Optional[str], job: NotificationJob, event: str):
        if not recipient_id:
            logger.debug("Skipping %s notification: no recipient", event)
            return None
        if actor_id and actor_id == recipient_id:
            logger.debug("Skipping %s notification: actor is the recipient (%s)", event, recipient_id)
            return None
        summary = await self.dispatcher.send_job(job)
        if summary is not None:
            logger.info(
                "%s notification for %s: sent=%d failed=%d total_tokens=%d",
                event, recipient_id, summary.sent, summary.failed, summary.total_tokens,
            )
        return summary

    async def reminder_created(
        self, creator_id: str, creator_name: str, recipient_id: str, reminder_title: str, task_id: str
    ) -> Optional[DeliverySummary]:
        """A reminder was created for someone other than its creator."""
        job = NotificationJob.for_task(
            [recipient_id],
            "New Reminder",
            f"{creator_name} created a reminder for you: {reminder_title}",
            task_id,
        )
        return await self._notify(creator_id, recipient_id, job, "reminder_created")

    async def reminder_reassigned(
        self, reassigner_id: str, reassigner_name: str, new_owner_id: str, reminder_title: str, task_id: str
    ) -> Optional[DeliverySummary]:
        """A task was reassigned to a new owner."""
        job = NotificationJob.for_task(
            [new_owner_id],
            "Reminder Reassigned",
            f"{reassigner_name} assigned you a reminder: {reminder_title}",
            task_id,
        )
        return await self._notify(reassigner_id, new_owner_id, job, "reminder_reassigned")

    async def task_completed(
        self, completed_by_id: str, completed_by_name: str, creator_id: str, task_title: str, task_id: str
    ) -> Optional[DeliverySummary]:
        """A task was completed by someone other than the person who assigned it."""
        job = NotificationJob.for_task(
            [creator_id],
            "Task Completed",
            f"{completed_by_name} completed: {task_title}",
            task_id,
        )
        return await self._notify(completed_by_id, creator_id, job, "task_completed")

    async def reminder_due(self, recipient_id: str, reminder_title: str, task_id: str) -> Optional[DeliverySummary]:
        job = NotificationJob.for_task(
            [recipient_id],
            "Reminder Due Today",
            f'Your task "{reminder_title}" is due today',
            task_id,
        )
        return await self._notify(None, recipient_id, job, "reminder_due")
