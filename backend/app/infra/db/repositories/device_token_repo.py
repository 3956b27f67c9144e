"""Device token repository (token registry)."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import generate_id, utcnow
from app.domain.notifications.models import DevicePlatform, DeviceToken
from app.infra.db.models.device_token import DeviceTokenModel

logger = logging.getLogger(__name__)


def _to_domain(row: DeviceTokenModel) -> DeviceToken:
    return DeviceToken(
        user_id=row.user_id,
        token=row.fcm_token,
        platform=DevicePlatform(row.device_platform),
        updated_at=row.updated_at,
    )


def _dialect_insert(dialect_name: str):
    """Dialect insert() supporting ON CONFLICT, or None when the backend has none."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


class DeviceTokenRepository:
    """Token registry backed by the device_tokens table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _write(self):
        """Commit on success, roll back and re-raise on failure."""
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def upsert(
        self,
        user_id: str,
        token: str,
        platform: DevicePlatform,
        updated_at: Optional[datetime] = None,
    ) -> DeviceToken:
        """Insert or update on (user_id, fcm_token) conflict. Last write wins on updated_at."""
        now = updated_at or utcnow()
        platform_value = DevicePlatform(platform).value
        insert = _dialect_insert(self.session.get_bind().dialect.name)
        async with self._write():
            if insert is not None:
                stmt = insert(DeviceTokenModel).values(
                    id=generate_id(),
                    user_id=user_id,
                    fcm_token=token,
                    device_platform=platform_value,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[DeviceTokenModel.user_id, DeviceTokenModel.fcm_token],
                    set_={
                        "device_platform": stmt.excluded.device_platform,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                await self.session.execute(stmt)
            else:
                row = await self._get_row(user_id, token)
                if row:
                    row.device_platform = platform_value
                    row.updated_at = now
                else:
                    self.session.add(
                        DeviceTokenModel(
                            id=generate_id(),
                            user_id=user_id,
                            fcm_token=token,
                            device_platform=platform_value,
                            created_at=now,
                            updated_at=now,
                        )
                    )
        return DeviceToken(
            user_id=user_id, token=token, platform=DevicePlatform(platform_value), updated_at=now
        )

    async def _get_row(self, user_id: str, token: str) -> Optional[DeviceTokenModel]:
        result = await self.session.execute(
            select(DeviceTokenModel).where(
                DeviceTokenModel.user_id == user_id,
                DeviceTokenModel.fcm_token == token,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: str, token: str) -> Optional[DeviceToken]:
        """Get one registry row."""
        row = await self._get_row(user_id, token)
        return _to_domain(row) if row else None

    async def find_by_token(self, token: str) -> List[DeviceToken]:
        """All rows holding a token (a token may be shared after an account switch)."""
        result = await self.session.execute(
            select(DeviceTokenModel).where(DeviceTokenModel.fcm_token == token)
        )
        return [_to_domain(r) for r in result.scalars().all()]

    async def list_for_users(self, user_ids: Iterable[str]) -> List[DeviceToken]:
        """List tokens for the users. Used by the dispatch service."""
        ids = list(user_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(DeviceTokenModel)
            .where(DeviceTokenModel.user_id.in_(ids))
            .order_by(DeviceTokenModel.user_id, DeviceTokenModel.updated_at.desc())
        )
        return [_to_domain(r) for r in result.scalars().all()]

    async def delete_token(self, token: str) -> int:
        """Delete a dead token. Idempotent."""
        async with self._write():
            result = await self.session.execute(
                delete(DeviceTokenModel).where(DeviceTokenModel.fcm_token == token)
            )
        return result.rowcount or 0

    async def delete_user_token(self, user_id: str, token: str) -> int:
        """Delete one of a user's tokens."""
        async with self._write():
            result = await self.session.execute(
                delete(DeviceTokenModel).where(
                    DeviceTokenModel.user_id == user_id,
                    DeviceTokenModel.fcm_token == token,
                )
            )
        return result.rowcount or 0

    async def delete_for_user(self, user_id: str) -> int:
        """Delete all tokens for a user (sign-out)."""
        async with self._write():
            result = await self.session.execute(
                delete(DeviceTokenModel).where(DeviceTokenModel.user_id == user_id)
            )
        return result.rowcount or 0
