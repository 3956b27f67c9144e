"""Push delivery via FCM HTTP v1 (Firebase Cloud Messaging)."""
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

import httpx

from app.domain.notifications.models import SendOutcome, SendResult
from app.infra.push.oauth import fetch_access_token
from app.infra.push.service_account import ServiceAccount, load_from_settings

logger = logging.getLogger(__name__)

DEFAULT_SEND_URL_TEMPLATE = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
# Provider error codes meaning the token will never work again
PERMANENT_ERROR_CODES = ("UNREGISTERED", "NOT_FOUND")


def build_message(
    token: str,
    title: str,
    body: str,
    data: Optional[dict] = None,
    channel_id: str = "default",
) -> dict:
    """FCM v1 envelope: notification block, string data, Android and APNs delivery hints."""
    return {
        "message": {
            "token": token,
            "notification": {"title": title, "body": body},
            # FCM data payload: all values must be strings
            "data": {str(k): str(v) for k, v in (data or {}).items()},
            "android": {
                "priority": "high",
                "notification": {
                    "channel_id": channel_id,
                    "sound": "default",
                    "click_action": "FLUTTER_NOTIFICATION_CLICK",
                },
            },
            "apns": {"payload": {"aps": {"sound": "default", "badge": 1}}},
        }
    }


def _error_codes(body_text: str) -> set[str]:
    """Collect status / errorCode values from an FCM error body."""
    try:
        payload = json.loads(body_text)
    except (json.JSONDecodeError, TypeError):
        return set()
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return set()
    codes = {error.get("status")}
    for detail in error.get("details") or []:
        if isinstance(detail, dict):
            codes.add(detail.get("errorCode"))
    return {c for c in codes if c}


def classify_failure(body_text: str) -> SendOutcome:
    """UNREGISTERED / NOT_FOUND are permanent; everything else is transient or unknown."""
    codes = _error_codes(body_text)
    if codes & set(PERMANENT_ERROR_CODES):
        return SendOutcome.UNREGISTERED
    if any(code in (body_text or "") for code in PERMANENT_ERROR_CODES):
        return SendOutcome.UNREGISTERED
    return SendOutcome.FAILED


class FcmSession:
    """Authorized sender for one dispatch invocation (one bearer, N sends)."""

    def __init__(self, client: httpx.AsyncClient, send_url: str, access_token: str, channel_id: str):
        self._client = client
        self._send_url = send_url
        self._access_token = access_token
        self._channel_id = channel_id

    async def send(self, token: str, title: str, body: str, data: Optional[dict] = None) -> SendResult:
        """Send to one token. Never raises for provider or transport failures."""
        message = build_message(token, title, body, data, self._channel_id)
        try:
            response = await self._client.post(
                self._send_url,
                json=message,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        except httpx.HTTPError as e:
            logger.warning("FCM transport error for token %s...: %s", token[:20], e)
            return SendResult(token=token, outcome=SendOutcome.FAILED, error=str(e))

        if response.is_success:
            logger.debug("Push sent to token %s...", token[:20])
            return SendResult(token=token, outcome=SendOutcome.SENT, status_code=response.status_code)

        error_body = response.text
        outcome = classify_failure(error_body)
        logger.warning(
            "FCM send error for token %s... (status=%s, outcome=%s): %s",
            token[:20],
            response.status_code,
            outcome.value,
            error_body[:500],
        )
        return SendResult(
            token=token,
            outcome=outcome,
            status_code=response.status_code,
            error=error_body[:1000],
        )


class FcmProvider:
    """Messaging provider: loads the service account, exchanges credentials, opens send sessions."""

    def __init__(
        self,
        account_loader: Callable[[], ServiceAccount],
        *,
        send_url_template: str = DEFAULT_SEND_URL_TEMPLATE,
        timeout: float = 10.0,
        channel_id: str = "default",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._account_loader = account_loader
        self._send_url_template = send_url_template
        self._timeout = timeout
        self._channel_id = channel_id
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "FcmProvider":
        """Build a provider from Settings."""
        return cls(
            lambda: load_from_settings(settings),
            send_url_template=settings.fcm_send_url_template,
            timeout=settings.push_http_timeout_seconds,
            channel_id=settings.push_android_channel_id,
            transport=transport,
        )

    def load_account(self) -> ServiceAccount:
        """Load the service account. Raises ConfigurationError when missing or invalid."""
        return self._account_loader()

    @asynccontextmanager
    async def open_session(self, account: ServiceAccount) -> AsyncIterator[FcmSession]:
        """Exchange credentials once and yield a session reused for every token.

        Raises ProviderAuthError when the exchange is rejected.
        """
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            access_token = await fetch_access_token(client, account)
            send_url = self._send_url_template.format(project_id=account.project_id)
            yield FcmSession(client, send_url, access_token, self._channel_id)
