"""In-process notification-tap events, so the UI can navigate to the tapped task."""
import logging
from typing import Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NotificationTap(BaseModel):
    """A tapped notification that points at a task."""

    task_id: str
    action: Optional[str] = None
    source: str = "push"  # 'push' or 'local'


TapHandler = Callable[[NotificationTap], None]


class NotificationTapHub:
    """Fan-out of tap events to subscribers."""

    def __init__(self):
        self._handlers: list[TapHandler] = []

    def subscribe(self, handler: TapHandler) -> Callable[[], None]:
        """Register a handler; returns an unsubscribe function."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def emit(self, tap: NotificationTap) -> None:
        """Deliver to every handler. A failing handler does not stop the others."""
        for handler in list(self._handlers):
            try:
                handler(tap)
            except Exception as e:
                logger.warning("Notification tap handler failed for task %s: %s", tap.task_id, e)


def tap_from_payload(payload: Optional[dict], source: str = "push") -> Optional[NotificationTap]:
    """Extract taskId/action from a notification data payload."""
    if not isinstance(payload, dict):
        return None
    task_id = payload.get("taskId")
    if not task_id:
        return None
    action = payload.get("action")
    return NotificationTap(task_id=str(task_id), action=str(action) if action else None, source=source)
