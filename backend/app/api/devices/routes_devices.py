"""Device push-token routes (token registry surface)."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Caller, get_current_user, get_db
from app.domain.notifications.models import DevicePlatform
from app.infra.db.repositories.device_token_repo import DeviceTokenRepository

logger = logging.getLogger(__name__)

router = APIRouter()


class PushTokenRequest(BaseModel):
    """Push token request."""
    token: str
    platform: DevicePlatform


@router.post("/push-token")
async def register_push_token(
    request: PushTokenRequest,
    current_user: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Register push token for the caller. Upserts on (user, token); re-registration refreshes updated_at."""
    repo = DeviceTokenRepository(db)
    device = await repo.upsert(
        user_id=current_user.id,
        token=request.token,
        platform=request.platform,
    )
    logger.info(
        f"📱 [DEVICE] Registered push token for user {current_user.id}: "
        f"platform={device.platform.value}, token={device.token_prefix}"
    )
    return {"ok": True, "updated_at": device.updated_at.isoformat()}


@router.delete("/push-token")
async def remove_push_tokens(
    current_user: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove every token of the caller (sign-out)."""
    removed = await DeviceTokenRepository(db).delete_for_user(current_user.id)
    logger.info(f"📱 [DEVICE] Removed {removed} push token(s) for user {current_user.id}")
    return {"ok": True, "removed": removed}


@router.delete("/push-token/{token}")
async def remove_push_token(
    token: str,
    current_user: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove one of the caller's tokens. Removing an unknown token is not an error."""
    removed = await DeviceTokenRepository(db).delete_user_token(current_user.id, token)
    return {"ok": True, "removed": removed}
