"""API dependencies."""
import hmac
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import AuthorizationError
from app.infra.db.session import get_db
from app.infra.security.jwt import decode_token
from app.services.dispatch_service import DispatchService, create_dispatch_service
from app.services.due_task_scan import DueTaskScanJob, today_in
from app.services.notification_service import BestEffortDispatcher, ReminderEventNotifier
from app.infra.db.repositories.user_task_repo import UserTaskRepository
from app.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

SERVICE_CALLER = "service"


class Caller(BaseModel):
    """Authenticated caller: a signed-in user or the service role."""

    id: str
    is_service: bool = False


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _is_service_key(token: str) -> bool:
    key = get_settings().service_role_key
    return bool(key) and hmac.compare_digest(token.encode(), key.encode())


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Caller:
    """Accept the service role key or a user access token."""
    if credentials is None or not credentials.credentials:
        raise _credentials_exception()
    token = credentials.credentials
    if _is_service_key(token):
        return Caller(id=SERVICE_CALLER, is_service=True)
    payload = decode_token(token)
    if payload is None:
        raise _credentials_exception()
    user_id = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise _credentials_exception()
    return Caller(id=user_id)


async def get_current_user(caller: Caller = Depends(get_caller)) -> Caller:
    """A signed-in user (device endpoints act on the caller's own tokens)."""
    if caller.is_service:
        raise AuthorizationError("User credential required")
    return caller


async def require_service(caller: Caller = Depends(get_caller)) -> Caller:
    """Service role only (scheduled jobs)."""
    if not caller.is_service:
        raise AuthorizationError("Service credential required")
    return caller


def get_dispatch_service(db: AsyncSession = Depends(get_db)) -> DispatchService:
    """Dispatch service bound to the request session."""
    return create_dispatch_service(db, get_settings())


def get_event_notifier(dispatch: DispatchService = Depends(get_dispatch_service)) -> ReminderEventNotifier:
    return ReminderEventNotifier(BestEffortDispatcher(dispatch))


def get_scan_job(
    db: AsyncSession = Depends(get_db),
    dispatch: DispatchService = Depends(get_dispatch_service),
) -> DueTaskScanJob:
    s = get_settings()
    return DueTaskScanJob(
        UserTaskRepository(db),
        dispatch,
        advance_days=s.scan_advance_days,
        today=lambda: today_in(s.scan_timezone),
    )
