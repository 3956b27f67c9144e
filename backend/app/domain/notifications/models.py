"""Push notification domain models."""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

OPEN_REMINDER_ACTION = "openReminder"


class DevicePlatform(str, Enum):
    """Platform a push token was issued on."""
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class Difficulty(str, Enum):
    """Task difficulty as stored by the task store."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


# Difficulties that earn a one-week advance warning
ADVANCE_WARNING_DIFFICULTIES = (Difficulty.MEDIUM, Difficulty.HARD)


class DeviceToken(BaseModel):
    """One (user, device) push destination in the token registry."""

    user_id: str
    token: str
    platform: DevicePlatform
    updated_at: datetime

    @property
    def token_prefix(self) -> str:
        """Loggable prefix of the token."""
        return f"{self.token[:20]}..."


class NotificationJob(BaseModel):
    """Ephemeral unit of dispatch work. Never stored."""

    user_ids: list[str]
    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def for_task(cls, user_ids: list[str], title: str, body: str, task_id: str) -> "NotificationJob":
        """Build a job whose payload opens the given task."""
        return cls(
            user_ids=user_ids,
            title=title,
            body=body,
            data={"taskId": task_id, "action": OPEN_REMINDER_ACTION},
        )


class SendOutcome(str, Enum):
    """Per-token delivery outcome."""
    SENT = "sent"
    UNREGISTERED = "unregistered"  # permanently dead, remove from registry
    FAILED = "failed"  # transient or unknown, keep the token


class SendResult(BaseModel):
    """Result of one provider send."""

    token: str
    outcome: SendOutcome
    status_code: Optional[int] = None
    error: Optional[str] = None


class DeliverySummary(BaseModel):
    """Dispatch result. sent + failed == total_tokens, cleaned <= failed."""

    sent: int = 0
    failed: int = 0
    cleaned: int = 0
    total_tokens: int = 0


class DueTaskRecord(BaseModel):
    """Projection of a task matched by the due-task scan."""

    id: str
    user_id: Optional[str] = None
    title: Optional[str] = None
    difficulty: Optional[str] = None
    due_date: Optional[date] = None


class ScanSummary(BaseModel):
    """One due-task scan cycle."""

    success: bool = True
    due_today_users: int = 0
    due_today_tasks: int = 0
    upcoming_users: int = 0
    upcoming_tasks: int = 0
    notifications_sent: int = 0
    dispatch_attempts: int = 0
