"""Service-credential exchange: signed JWT assertion -> short-lived bearer token.

One exchange per dispatch invocation; the bearer is reused for every per-token send.
"""
import logging
import time
from typing import Optional

import httpx
from google.auth import crypt
from google.auth import jwt as google_jwt

from app.domain.common.errors import ConfigurationError, ProviderAuthError
from app.infra.push.service_account import ServiceAccount

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600


def assertion_claims(account: ServiceAccount, now: Optional[int] = None) -> dict:
    """Claims for the service identity assertion."""
    issued_at = int(time.time()) if now is None else int(now)
    return {
        "iss": account.client_email,
        "sub": account.client_email,
        "aud": account.token_uri,
        "iat": issued_at,
        "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
        "scope": FCM_SCOPE,
    }


def build_assertion(account: ServiceAccount, now: Optional[int] = None) -> str:
    """RS256-sign the assertion with the service account private key."""
    try:
        signer = crypt.RSASigner.from_service_account_info(
            {"private_key": account.private_key, "private_key_id": account.private_key_id}
        )
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Service account private key is unusable: {e}") from e
    return google_jwt.encode(signer, assertion_claims(account, now)).decode("utf-8")


async def exchange_assertion(client: httpx.AsyncClient, account: ServiceAccount, assertion: str) -> str:
    """Trade the signed assertion for a bearer access token."""
    try:
        response = await client.post(
            account.token_uri,
            data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except httpx.HTTPError as e:
        raise ProviderAuthError(f"Failed to get access token: {e}") from e
    if response.status_code != 200:
        raise ProviderAuthError(f"Failed to get access token: {response.text}")
    try:
        payload = response.json()
    except ValueError as e:
        raise ProviderAuthError(f"Failed to get access token: {e}") from e
    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if not access_token:
        raise ProviderAuthError("Failed to get access token: no access_token in response")
    logger.debug("Obtained provider access token for %s", account.client_email)
    return access_token


async def fetch_access_token(client: httpx.AsyncClient, account: ServiceAccount) -> str:
    """Sign and exchange in one step."""
    return await exchange_assertion(client, account, build_assertion(account))
