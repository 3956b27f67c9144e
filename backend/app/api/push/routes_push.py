"""Push dispatch routes."""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import Caller, get_caller, get_dispatch_service
from app.domain.common.errors import ValidationError
from app.services.dispatch_service import MISSING_FIELDS_MESSAGE, DispatchService

logger = logging.getLogger(__name__)

router = APIRouter()


class PushSendRequest(BaseModel):
    """Dispatch request. Fields are optional here so missing ones map to a 400, not a 422."""
    user_ids: Optional[List[str]] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[dict[str, Any]] = None


class PushSendResponse(BaseModel):
    """Delivery summary."""
    success: bool = True
    sent: int
    failed: int
    cleaned: int
    total_tokens: int
    message: Optional[str] = None


@router.post("/send", response_model=PushSendResponse, response_model_exclude_none=True)
async def send_push_notification(
    request: PushSendRequest,
    caller: Caller = Depends(get_caller),
    dispatch: DispatchService = Depends(get_dispatch_service),
):
    """Send a notification to every registered device of the given users."""
    if not request.user_ids or not request.title or not request.body:
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    logger.info(
        f"🔔 [PUSH] Dispatch by {caller.id} to {len(request.user_ids)} user(s): {request.title!r}"
    )
    summary = await dispatch.send(request.user_ids, request.title, request.body, request.data)
    return PushSendResponse(
        **summary.model_dump(),
        message="No device tokens found" if summary.total_tokens == 0 else None,
    )
