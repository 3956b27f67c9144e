"""
Token registration client: keeps the token registry current for this device.

Runs on every app launch/foreground. All failures degrade to "no push for this device":
they are logged, never raised to the caller.
"""
import asyncio
import logging
from typing import Any, Optional, Protocol

from app.client.capability import (
    CapabilityDescriptor,
    PermissionState,
    PushCapability,
    PushEvent,
)
from app.client.events import NotificationTapHub, tap_from_payload
from app.domain.notifications.models import DevicePlatform

logger = logging.getLogger(__name__)

DEFAULT_READY_TIMEOUT = 2.0
DEFAULT_CHANNEL_ID = "default"
DEFAULT_CHANNEL_NAME = "Reminders"


class TokenRegistryWriter(Protocol):
    """Registry writes the device needs (implemented by TokenRegistryApi)."""

    async def upsert_token(self, user_id: str, token: str, platform: DevicePlatform) -> bool:
        ...

    async def remove_tokens(self, user_id: str) -> int:
        ...


def _token_from_payload(payload: Any) -> Optional[str]:
    """Token-acquired payloads carry the token as 'value' (or are the bare string)."""
    if isinstance(payload, str):
        return payload or None
    if isinstance(payload, dict):
        value = payload.get("value")
        return str(value) if value else None
    return None


def _tap_data(payload: Any) -> Optional[dict]:
    """Data block of a tapped push notification."""
    if not isinstance(payload, dict):
        return None
    notification = payload.get("notification")
    if isinstance(notification, dict) and isinstance(notification.get("data"), dict):
        return notification["data"]
    data = payload.get("data")
    return data if isinstance(data, dict) else None


class TokenRegistrationClient:
    """Acquires this device's push token and upserts it for the signed-in user."""

    def __init__(
        self,
        capability: PushCapability,
        descriptor: CapabilityDescriptor,
        registry: TokenRegistryWriter,
        taps: Optional[NotificationTapHub] = None,
        *,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        channel_id: str = DEFAULT_CHANNEL_ID,
        channel_name: str = DEFAULT_CHANNEL_NAME,
    ):
        self.capability = capability
        self.descriptor = descriptor
        self.registry = registry
        self.taps = taps or NotificationTapHub()
        self.ready_timeout = ready_timeout
        self.channel_id = channel_id
        self.channel_name = channel_name
        self.user_id: Optional[str] = None
        self.listeners_installed = False

    async def initialize(self, user_id: str) -> bool:
        """
        Register this device for push on behalf of user_id.

        Returns True once a fresh token has been requested. The token itself arrives
        asynchronously through the token-acquired listener.
        """
        if not self.descriptor.is_native:
            logger.info("Push not available on %s host; skipping registration", self.descriptor.platform.value)
            return False

        self.user_id = user_id
        try:
            if not await self._wait_until_ready():
                logger.info("Push bridge not ready after %.1fs; skipping registration", self.ready_timeout)
                return False

            if self.descriptor.platform == DevicePlatform.ANDROID:
                await self.capability.ensure_channel(self.channel_id, self.channel_name)

            permission = await self.capability.check_permissions()
            if permission != PermissionState.GRANTED:
                permission = await self.capability.request_permissions()
            if permission != PermissionState.GRANTED:
                logger.info("Push permission %s for user %s; no token requested", permission.value, user_id)
                return False

            self._install_listeners()
            # Always ask for a fresh token; tokens rotate
            await self.capability.register()
            return True
        except Exception as e:
            logger.error("Push registration failed for user %s: %s", user_id, e)
            return False

    async def _wait_until_ready(self) -> bool:
        try:
            return bool(await asyncio.wait_for(self.capability.wait_until_ready(), timeout=self.ready_timeout))
        except asyncio.TimeoutError:
            return False

    def _install_listeners(self) -> None:
        if self.listeners_installed:
            return
        self.capability.add_listener(PushEvent.TOKEN_ACQUIRED, self._on_token)
        self.capability.add_listener(PushEvent.REGISTRATION_ERROR, self._on_registration_error)
        self.capability.add_listener(PushEvent.MESSAGE_RECEIVED, self._on_message)
        self.capability.add_listener(PushEvent.NOTIFICATION_TAPPED, self._on_tap)
        self.listeners_installed = True

    async def _on_token(self, payload: Any) -> None:
        token = _token_from_payload(payload)
        user_id = self.user_id
        if not token or not user_id:
            logger.warning("Token event without token or signed-in user; ignoring")
            return
        try:
            await self.registry.upsert_token(user_id, token, self.descriptor.platform)
        except Exception as e:
            logger.error("Error saving push token for user %s: %s", user_id, e)

    async def _on_registration_error(self, payload: Any) -> None:
        logger.error("Push registration error: %s", payload)

    async def _on_message(self, payload: Any) -> None:
        logger.info("Push received in foreground: %s", payload)

    async def _on_tap(self, payload: Any) -> None:
        tap = tap_from_payload(_tap_data(payload), source="push")
        if tap is None:
            logger.debug("Push tap without a task payload")
            return
        self.taps.emit(tap)

    async def remove_token(self) -> int:
        """Sign-out: delete every registry row of the current user and drop listeners."""
        user_id = self.user_id
        removed = 0
        if user_id and self.descriptor.is_native:
            try:
                removed = await self.registry.remove_tokens(user_id)
            except Exception as e:
                logger.error("Error removing push tokens for user %s: %s", user_id, e)
        if self.listeners_installed:
            try:
                self.capability.remove_all_listeners()
            except Exception as e:
                logger.warning("Error removing push listeners: %s", e)
        self.listeners_installed = False
        self.user_id = None
        return removed
