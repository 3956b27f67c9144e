"""
Firebase service-account loading.

The credential reaches the process one of two ways:
1. FIREBASE_SERVICE_ACCOUNT holds the entire JSON key (raw or base64, for PaaS env vars
   that cannot carry newlines).
2. FIREBASE_SERVICE_ACCOUNT_PATH points at the downloaded key file.

Anything missing or malformed raises ConfigurationError so the dispatch call fails fast.
"""
import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.domain.common.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


class ServiceAccount(BaseModel):
    """Fields of a Google service-account key used for FCM."""

    type: str = "service_account"
    project_id: str
    private_key_id: Optional[str] = None
    private_key: str
    client_email: str
    client_id: Optional[str] = None
    token_uri: str = DEFAULT_TOKEN_URI


def _decode_json(raw: str) -> dict:
    """Parse raw JSON, falling back to base64-encoded JSON."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        try:
            data = json.loads(base64.b64decode(raw).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT is not a JSON object")
    return data


def load_service_account(raw_json: str = "", path: str = "") -> ServiceAccount:
    """Load the service account from inline JSON (preferred) or a key file path."""
    raw = (raw_json or "").strip()
    if raw:
        data = _decode_json(raw)
    elif (path or "").strip():
        key_file = Path(path).expanduser()
        try:
            data = _decode_json(key_file.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Could not read service account file {key_file}: {e}") from e
    else:
        raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT not configured")
    try:
        account = ServiceAccount(**data)
    except PydanticValidationError as e:
        missing = ", ".join(str(err["loc"][0]) for err in e.errors())
        raise ConfigurationError(f"Service account is missing required fields: {missing}") from e
    logger.debug("Loaded service account %s for project %s", account.client_email, account.project_id)
    return account


def load_from_settings(settings) -> ServiceAccount:
    """Load the service account named by the current settings."""
    return load_service_account(
        getattr(settings, "firebase_service_account", "") or "",
        getattr(settings, "firebase_service_account_path", "") or "",
    )
