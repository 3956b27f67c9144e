"""
Device capabilities: what the host can do for push and local notifications.

The descriptor is resolved once at session start and passed to the components that need
it. Each capability has a real provider (wrapping the platform SDK bridge, supplied by the
host app) and a null provider used on hosts without native support.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, Field

from app.domain.notifications.models import DevicePlatform

logger = logging.getLogger(__name__)


class PermissionState(str, Enum):
    """Notification permission as reported by the platform."""
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"  # not asked yet


class PushEvent(str, Enum):
    """Push listener events."""
    TOKEN_ACQUIRED = "registration"
    REGISTRATION_ERROR = "registrationError"
    MESSAGE_RECEIVED = "pushNotificationReceived"
    NOTIFICATION_TAPPED = "pushNotificationActionPerformed"


class LocalEvent(str, Enum):
    """Local-notification listener events."""
    NOTIFICATION_TAPPED = "localNotificationActionPerformed"


# Listener signature: receives the platform event payload
Listener = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Host capabilities, resolved once per session."""

    is_native: bool
    platform: DevicePlatform

    @classmethod
    def web(cls) -> "CapabilityDescriptor":
        return cls(is_native=False, platform=DevicePlatform.WEB)

    @classmethod
    def resolve(cls, platform_name: Optional[str]) -> "CapabilityDescriptor":
        """Descriptor from the platform name the host bridge reports ('ios', 'android', 'web')."""
        try:
            platform = DevicePlatform((platform_name or "").strip().lower())
        except ValueError:
            logger.info("Unknown host platform %r; treating as web", platform_name)
            return cls.web()
        return cls(is_native=platform != DevicePlatform.WEB, platform=platform)


class ScheduledLocalNotification(BaseModel):
    """Entry in the platform's local-notification store."""

    id: int
    title: str
    body: str
    fire_at: datetime
    extra: dict[str, str] = Field(default_factory=dict)


class PushCapability(Protocol):
    """Platform push SDK bridge."""

    async def wait_until_ready(self) -> bool:
        """Resolve True once the host bridge is ready."""
        ...

    async def ensure_channel(self, channel_id: str, name: str) -> None:
        """Create the notification channel if missing (Android; idempotent)."""
        ...

    async def check_permissions(self) -> PermissionState:
        ...

    async def request_permissions(self) -> PermissionState:
        ...

    def add_listener(self, event: PushEvent, listener: Listener) -> None:
        ...

    def remove_all_listeners(self) -> None:
        ...

    async def register(self) -> None:
        """Request a fresh token; it arrives through the TOKEN_ACQUIRED listener."""
        ...


class LocalNotificationCapability(Protocol):
    """Platform local-notification bridge."""

    async def check_permissions(self) -> PermissionState:
        ...

    async def request_permissions(self) -> PermissionState:
        ...

    async def schedule(self, notifications: list[ScheduledLocalNotification]) -> None:
        """Schedule; an existing entry with the same id is replaced."""
        ...

    async def cancel(self, ids: list[int]) -> None:
        """Cancel; unknown ids are ignored."""
        ...

    def add_listener(self, event: LocalEvent, listener: Listener) -> None:
        ...


class NullPushCapability:
    """Push capability for hosts without native push. Never ready, never grants."""

    async def wait_until_ready(self) -> bool:
        return False

    async def ensure_channel(self, channel_id: str, name: str) -> None:
        return None

    async def check_permissions(self) -> PermissionState:
        return PermissionState.DENIED

    async def request_permissions(self) -> PermissionState:
        return PermissionState.DENIED

    def add_listener(self, event: PushEvent, listener: Listener) -> None:
        return None

    def remove_all_listeners(self) -> None:
        return None

    async def register(self) -> None:
        return None


class NullLocalNotificationCapability:
    """Local-notification capability for hosts without native support."""

    async def check_permissions(self) -> PermissionState:
        return PermissionState.DENIED

    async def request_permissions(self) -> PermissionState:
        return PermissionState.DENIED

    async def schedule(self, notifications: list[ScheduledLocalNotification]) -> None:
        logger.debug("Local notifications unavailable; dropping %d", len(notifications))

    async def cancel(self, ids: list[int]) -> None:
        return None

    def add_listener(self, event: LocalEvent, listener: Listener) -> None:
        return None


def select_push_capability(
    descriptor: CapabilityDescriptor, native_factory: Callable[[], PushCapability]
) -> PushCapability:
    """Native provider on native hosts, null provider elsewhere. Call once at startup."""
    if not descriptor.is_native:
        return NullPushCapability()
    return native_factory()


def select_local_capability(
    descriptor: CapabilityDescriptor, native_factory: Callable[[], LocalNotificationCapability]
) -> LocalNotificationCapability:
    if not descriptor.is_native:
        return NullLocalNotificationCapability()
    return native_factory()
