"""Caller JWTs (HS256 access tokens issued by the identity service)."""
import logging
from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt

from app.domain.common.types import utcnow
from app.settings import settings

logger = logging.getLogger(__name__)


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create an access token for a user id."""
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {"sub": subject, "type": "access", "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify a token. None when invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.debug("Token rejected: %s", e)
        return None
