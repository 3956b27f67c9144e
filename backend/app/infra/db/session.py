"""Request-scoped database sessions."""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.db import base


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session; rolled back if the request raised."""
    if base.AsyncSessionLocal is None:
        raise RuntimeError("Database engine is not configured")
    async with base.AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
