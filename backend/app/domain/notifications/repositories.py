"""Push notification repository protocols."""
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from app.domain.notifications.models import DevicePlatform, DeviceToken, DueTaskRecord


class TokenRegistry(Protocol):
    """Token registry protocol: (user, token) -> platform, updated_at."""

    async def upsert(
        self,
        user_id: str,
        token: str,
        platform: DevicePlatform,
        updated_at: Optional[datetime] = None,
    ) -> DeviceToken:
        """Insert or, on (user, token) conflict, refresh platform and timestamp."""
        ...

    async def list_for_users(self, user_ids: Iterable[str]) -> list[DeviceToken]:
        """All tokens registered for any of the users."""
        ...

    async def delete_token(self, token: str) -> int:
        """Delete every row holding the token. Returns rows removed (0 if already gone)."""
        ...

    async def delete_for_user(self, user_id: str) -> int:
        """Delete all rows of a user (sign-out)."""
        ...


class DueTaskQuery(Protocol):
    """Task store query consumed by the due-task scan."""

    async def list_due(
        self, due_on: date, difficulties: Optional[Iterable[str]] = None
    ) -> list[DueTaskRecord]:
        """Pending, enabled tasks due on a date, optionally filtered by difficulty."""
        ...
