"""
Local scheduling client: device-local notifications for due dates and advance warnings.

No server involvement. Every call is a silent no-op on hosts without native support or
without notification permission.
"""
import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional, Union

from app.client.capability import (
    CapabilityDescriptor,
    LocalEvent,
    LocalNotificationCapability,
    PermissionState,
    ScheduledLocalNotification,
)
from app.domain.notifications.models import (
    ADVANCE_WARNING_DIFFICULTIES,
    OPEN_REMINDER_ACTION,
    DueTaskRecord,
)

logger = logging.getLogger(__name__)

DUE_TODAY_TITLE = "Reminder Due Today"
ADVANCE_TITLE = "Big Task Coming Up"
ADVANCE_BODY = "You have a big task due next week. Make sure you have all the supplies to get it done."
DEFAULT_TITLE = "Reminder"

DUE_NOTIFICATION_TIME = time(8, 0)
ADVANCE_NOTIFICATION_TIME = time(9, 0)
ADVANCE_DAYS = 7
IMMEDIATE_DELAY = timedelta(seconds=1)

ID_PREFIX_WIDTH = 8
_HEX_RUN = re.compile(r"[0-9a-fA-F]+")


def derive_notification_id(task_id: str) -> int:
    """
    Local notification id for a task: the leading hex digits of its first 8 characters,
    read as base 16. The paired advance notification uses id + 1.

    Raises:
        ValueError: the identifier does not start with a hex digit
    """
    match = _HEX_RUN.match(task_id[:ID_PREFIX_WIDTH])
    if match is None:
        raise ValueError(f"Task id {task_id!r} has no leading hex digits")
    return int(match.group(0), 16)


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def _payload(task_id: str) -> dict[str, str]:
    return {"taskId": task_id, "action": OPEN_REMINDER_ACTION}


class LocalSchedulingClient:
    """Schedules due-date and advance-warning notifications on this device."""

    def __init__(
        self,
        capability: LocalNotificationCapability,
        descriptor: CapabilityDescriptor,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.capability = capability
        self.descriptor = descriptor
        # Local wall-clock time of the device
        self.now = now or datetime.now

    async def _can_notify(self) -> bool:
        if not self.descriptor.is_native:
            logger.debug("Local notifications not available on %s host", self.descriptor.platform.value)
            return False
        try:
            permission = await self.capability.check_permissions()
            if permission != PermissionState.GRANTED:
                permission = await self.capability.request_permissions()
        except Exception as e:
            logger.error("Failed to check local notification permissions: %s", e)
            return False
        if permission != PermissionState.GRANTED:
            logger.info("No local notification permission")
            return False
        return True

    async def _schedule(self, notification: ScheduledLocalNotification) -> bool:
        try:
            await self.capability.schedule([notification])
        except Exception as e:
            logger.error("Failed to schedule local notification %d: %s", notification.id, e)
            return False
        logger.info("Scheduled local notification %d (%s) at %s", notification.id, notification.title, notification.fire_at)
        return True

    async def schedule_reminder_due_today(self, task_id: str, title: str) -> bool:
        """Fire a due-today notification one second from now."""
        if not await self._can_notify():
            return False
        try:
            notification_id = derive_notification_id(task_id)
        except ValueError as e:
            logger.error("Cannot schedule due-today notification: %s", e)
            return False
        return await self._schedule(
            ScheduledLocalNotification(
                id=notification_id,
                title=DUE_TODAY_TITLE,
                body=f"Your task to {title} is due today.",
                fire_at=self.now() + IMMEDIATE_DELAY,
                extra=_payload(task_id),
            )
        )

    async def schedule_reminder_notification(
        self,
        task_id: str,
        title: str,
        description: str,
        due_date: Union[date, datetime],
    ) -> bool:
        """
        Schedule the due-date notification at 08:00 local time on the due date.

        When 08:00 has already passed: fire now if the task is due today, otherwise skip.
        Re-scheduling the same task replaces the earlier entry.
        """
        if not await self._can_notify():
            return False
        due = _as_date(due_date)
        fire_at = datetime.combine(due, DUE_NOTIFICATION_TIME)
        now = self.now()
        if fire_at <= now:
            if due == now.date():
                return await self.schedule_reminder_due_today(task_id, title)
            logger.debug("Due date %s for task %s has passed; not scheduling", due, task_id)
            return False
        try:
            notification_id = derive_notification_id(task_id)
        except ValueError as e:
            logger.error("Cannot schedule due-date notification: %s", e)
            return False
        return await self._schedule(
            ScheduledLocalNotification(
                id=notification_id,
                title=DUE_TODAY_TITLE,
                body=f"Your task to {title} is due today.",
                fire_at=fire_at,
                extra=_payload(task_id),
            )
        )

    async def schedule_advance_notification(
        self,
        task_id: str,
        title: str,
        due_date: Union[date, datetime],
        difficulty: Optional[str],
    ) -> bool:
        """Schedule a warning one week before the due date at 09:00, for Medium and Hard tasks only."""
        allowed = {d.value.lower() for d in ADVANCE_WARNING_DIFFICULTIES}
        if (difficulty or "").lower() not in allowed:
            return False
        if not await self._can_notify():
            return False
        fire_at = datetime.combine(_as_date(due_date) - timedelta(days=ADVANCE_DAYS), ADVANCE_NOTIFICATION_TIME)
        if fire_at <= self.now():
            logger.debug("Advance notification time for task %s has passed; skipping", task_id)
            return False
        try:
            notification_id = derive_notification_id(task_id) + 1
        except ValueError as e:
            logger.error("Cannot schedule advance notification: %s", e)
            return False
        return await self._schedule(
            ScheduledLocalNotification(
                id=notification_id,
                title=ADVANCE_TITLE,
                body=ADVANCE_BODY,
                fire_at=fire_at,
                extra=_payload(task_id),
            )
        )

    async def cancel_notification(self, task_id: str) -> None:
        """Cancel both the due-date and the advance notification of a task."""
        if not self.descriptor.is_native:
            return
        try:
            notification_id = derive_notification_id(task_id)
            await self.capability.cancel([notification_id, notification_id + 1])
        except Exception as e:
            logger.error("Failed to cancel notifications for task %s: %s", task_id, e)

    async def schedule_all_task_notifications(
        self, tasks: Iterable[DueTaskRecord], current_user_id: str
    ) -> int:
        """Schedule notifications for every task owned by the current user. Returns entries scheduled."""
        if not self.descriptor.is_native:
            return 0
        scheduled = 0
        for task in tasks:
            if task.user_id != current_user_id or task.due_date is None:
                continue
            title = task.title or DEFAULT_TITLE
            if await self.schedule_reminder_notification(task.id, title, "", task.due_date):
                scheduled += 1
            if task.difficulty and await self.schedule_advance_notification(
                task.id, title, task.due_date, task.difficulty
            ):
                scheduled += 1
        return scheduled

    def add_tap_listener(self, on_tap: Callable[[str], None]) -> None:
        """Call on_tap(task_id) when a local notification that opens a reminder is tapped."""
        if not self.descriptor.is_native:
            return

        async def _listener(payload) -> None:
            notification = payload.get("notification") if isinstance(payload, dict) else None
            extra = (notification or {}).get("extra") or {}
            task_id = extra.get("taskId")
            if task_id and extra.get("action") == OPEN_REMINDER_ACTION:
                try:
                    on_tap(str(task_id))
                except Exception as e:
                    logger.warning("Local notification tap handler failed for task %s: %s", task_id, e)

        self.capability.add_listener(LocalEvent.NOTIFICATION_TAPPED, _listener)
