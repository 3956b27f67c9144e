"""Token registry API client (device side)."""
import logging
from typing import Callable, Optional, Union
from urllib.parse import quote

import httpx

from app.domain.notifications.models import DevicePlatform

logger = logging.getLogger(__name__)

AccessToken = Union[str, Callable[[], Optional[str]]]


def _log_connection_error(operation: str, url: str, e: Exception) -> None:
    """Log a clear message when the registry API is unreachable."""
    if isinstance(e, httpx.ConnectError):
        logger.error("Token registry API unreachable at %s (%s)", url, e)
    else:
        logger.error(f"Token registry {operation} failed: {e}")


class TokenRegistryApi:
    """Client for the /devices/push-token endpoints, acting as the signed-in user."""

    def __init__(
        self,
        base_url: str,
        access_token: AccessToken,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        token = self._access_token() if callable(self._access_token) else self._access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def upsert_token(self, user_id: str, token: str, platform: DevicePlatform) -> bool:
        """
        Upsert the (user, token) row. The server keys the row on the bearer's user;
        user_id is only used for logging.

        Returns:
            bool: True if the registry accepted the token
        """
        url = f"{self.base_url}/devices/push-token"
        payload = {"token": token, "platform": DevicePlatform(platform).value}
        try:
            async with self._client() as client:
                response = await client.post(url, headers=self._headers(), json=payload)
                response.raise_for_status()
                logger.info(f"📱 [DEVICE] Token saved for user {user_id}: {token[:20]}...")
                return bool(response.json().get("ok", False))
        except httpx.ConnectError as e:
            _log_connection_error("upsert", url, e)
            raise
        except httpx.HTTPError as e:
            logger.error(f"Token upsert failed for user {user_id}: {e}")
            raise

    async def remove_tokens(self, user_id: str) -> int:
        """Delete every registry row of the signed-in user. Returns rows removed."""
        url = f"{self.base_url}/devices/push-token"
        try:
            async with self._client() as client:
                response = await client.delete(url, headers=self._headers())
                response.raise_for_status()
                removed = int(response.json().get("removed", 0))
                logger.info(f"📱 [DEVICE] Removed {removed} token(s) for user {user_id}")
                return removed
        except httpx.ConnectError as e:
            _log_connection_error("removal", url, e)
            raise
        except httpx.HTTPError as e:
            logger.error(f"Token removal failed for user {user_id}: {e}")
            raise

    async def remove_token(self, token: str) -> int:
        """Delete one of the signed-in user's tokens."""
        url = f"{self.base_url}/devices/push-token/{quote(token, safe='')}"
        try:
            async with self._client() as client:
                response = await client.delete(url, headers=self._headers())
                response.raise_for_status()
                return int(response.json().get("removed", 0))
        except httpx.HTTPError as e:
            _log_connection_error("removal", url, e)
            raise
