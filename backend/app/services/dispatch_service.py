"""
Notification dispatch: deliver one message to every registered device of a set of users.

Resolves tokens from the registry, exchanges provider credentials once, sends per token
(concurrently, bounded), and removes tokens the provider reports as permanently dead.
Transient failures are counted and logged; the next natural trigger is the retry.
"""
import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Iterable, Optional, Protocol

from app.domain.common.errors import ValidationError
from app.domain.notifications.models import (
    DeliverySummary,
    DeviceToken,
    NotificationJob,
    SendOutcome,
    SendResult,
)
from app.domain.notifications.repositories import TokenRegistry

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: user_ids, title, body"


class PushSession(Protocol):
    """Authorized provider session."""

    async def send(self, token: str, title: str, body: str, data: Optional[dict] = None) -> SendResult:
        ...


class MessagingProvider(Protocol):
    """Platform messaging provider."""

    def load_account(self) -> Any:
        """Resolve credentials without contacting the provider."""
        ...

    def open_session(self, account: Any) -> AbstractAsyncContextManager[PushSession]:
        ...


def normalize_user_ids(user_ids: Optional[Iterable[Any]]) -> list[str]:
    """Deduplicate, keep order, drop blanks."""
    seen: dict[str, None] = {}
    for uid in user_ids or []:
        value = str(uid).strip() if uid is not None else ""
        if value:
            seen.setdefault(value, None)
    return list(seen)


class DispatchService:
    """Dispatch service."""

    def __init__(
        self,
        registry: TokenRegistry,
        provider: MessagingProvider,
        *,
        max_concurrency: int = 10,
        transient_retries: int = 0,
    ):
        self.registry = registry
        self.provider = provider
        self.max_concurrency = max(1, max_concurrency)
        self.transient_retries = max(0, transient_retries)

    async def send_job(self, job: NotificationJob) -> DeliverySummary:
        """Dispatch a NotificationJob."""
        return await self.send(job.user_ids, job.title, job.body, job.data)

    async def send(
        self,
        user_ids: Iterable[str],
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> DeliverySummary:
        """
        Deliver to every token of the users.

        Raises:
            ValidationError: empty recipient set, title or body.
            ConfigurationError: credentials missing, before the registry is read.
            ProviderAuthError: exchange rejected, before any send is attempted.
        """
        recipients = normalize_user_ids(user_ids)
        if not recipients or not title or not body:
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        payload = {str(k): str(v) for k, v in (data or {}).items()}
        account = self.provider.load_account()

        tokens = await self.registry.list_for_users(recipients)
        if not tokens:
            logger.info("No device tokens found for users: %s", recipients)
            return DeliverySummary()

        async with self.provider.open_session(account) as session:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def _bounded(device: DeviceToken) -> SendResult:
                async with semaphore:
                    return await self._deliver(session, device, title, body, payload)

            results = await asyncio.gather(*(_bounded(t) for t in tokens))

        summary = DeliverySummary(total_tokens=len(tokens))
        for result in results:
            if result.outcome == SendOutcome.SENT:
                summary.sent += 1
                continue
            summary.failed += 1
            if result.outcome == SendOutcome.UNREGISTERED and await self._cleanup(result.token):
                summary.cleaned += 1

        logger.info(
            "Push notifications: %d sent, %d failed, %d stale tokens cleaned (total %d)",
            summary.sent,
            summary.failed,
            summary.cleaned,
            summary.total_tokens,
        )
        return summary

    async def _deliver(
        self,
        session: PushSession,
        device: DeviceToken,
        title: str,
        body: str,
        data: dict[str, str],
    ) -> SendResult:
        """One token, with optional immediate retries for transient failures."""
        attempt = 0
        while True:
            try:
                result = await session.send(device.token, title, body, data)
            except Exception as e:
                logger.warning("Push send raised for token %s: %s", device.token_prefix, e)
                result = SendResult(token=device.token, outcome=SendOutcome.FAILED, error=str(e))
            if result.outcome != SendOutcome.FAILED or attempt >= self.transient_retries:
                return result
            attempt += 1
            logger.info("Retrying token %s (attempt %d)", device.token_prefix, attempt + 1)

    async def _cleanup(self, token: str) -> bool:
        """Remove a dead token. A failed delete is logged and not counted as cleaned."""
        logger.info("Cleaning up stale token: %s...", token[:20])
        try:
            await self.registry.delete_token(token)
        except Exception as e:
            logger.error("Failed to delete stale token %s...: %s", token[:20], e)
            return False
        return True


def create_dispatch_service(session, settings, transport=None) -> DispatchService:
    """Wire the SQL token registry and FCM provider from settings."""
    from app.infra.db.repositories.device_token_repo import DeviceTokenRepository
    from app.infra.push.fcm import FcmProvider

    return DispatchService(
        DeviceTokenRepository(session),
        FcmProvider.from_settings(settings, transport=transport),
        max_concurrency=settings.push_max_concurrency,
        transient_retries=settings.push_transient_retries,
    )
