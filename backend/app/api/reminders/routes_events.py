"""Reminder domain-event routes: best-effort pushes that never fail the caller."""
import logging
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.deps import Caller, get_caller, get_event_notifier
from app.services.notification_service import ReminderEventNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


class ReminderEventType(str, Enum):
    REMINDER_CREATED = "reminder_created"
    REMINDER_REASSIGNED = "reminder_reassigned"
    TASK_COMPLETED = "task_completed"
    REMINDER_DUE = "reminder_due"


class ReminderEventRequest(BaseModel):
    """A reminder domain event. actor_id defaults to the calling user."""
    event: ReminderEventType
    recipient_id: str
    task_id: str
    task_title: str
    actor_id: Optional[str] = None
    actor_name: str = "Someone"


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def reminder_event(
    request: ReminderEventRequest,
    caller: Caller = Depends(get_caller),
    notifier: ReminderEventNotifier = Depends(get_event_notifier),
):
    """Notify the recipient of a reminder event. Always accepted, whatever the delivery outcome."""
    actor_id = caller.id if not caller.is_service else request.actor_id
    if request.event == ReminderEventType.REMINDER_CREATED:
        summary = await notifier.reminder_created(
            actor_id, request.actor_name, request.recipient_id, request.task_title, request.task_id
        )
    elif request.event == ReminderEventType.REMINDER_REASSIGNED:
        summary = await notifier.reminder_reassigned(
            actor_id, request.actor_name, request.recipient_id, request.task_title, request.task_id
        )
    elif request.event == ReminderEventType.TASK_COMPLETED:
        summary = await notifier.task_completed(
            actor_id, request.actor_name, request.recipient_id, request.task_title, request.task_id
        )
    else:
        summary = await notifier.reminder_due(request.recipient_id, request.task_title, request.task_id)
    return {"ok": True, "delivery": summary.model_dump() if summary is not None else None}
