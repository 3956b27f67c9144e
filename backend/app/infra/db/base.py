"""Database engine, session factory and declarative base."""
import os
import ssl
import sys
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


def normalize_async_pg_url(url: str) -> str:
    """Hosted Postgres hands out postgresql:// URLs; the app needs the asyncpg driver."""
    u = (url or "").strip()
    if u.startswith("postgresql://"):
        return "postgresql+asyncpg://" + u[len("postgresql://"):]
    return u


def engine_args(url: str) -> tuple[str, dict]:
    """
    (url, connect_args) for create_async_engine.

    asyncpg rejects the sslmode query parameter, so sslmode=require is moved into an ssl
    connect arg. Certificates are not verified unless DATABASE_SSL_VERIFY is true.
    """
    url = normalize_async_pg_url(url)
    parsed = urlparse(url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    sslmode = query.pop("sslmode", None)
    stripped = urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
    if sslmode != ["require"]:
        return stripped, {}
    if os.environ.get("DATABASE_SSL_VERIFY", "false").strip().lower() in ("true", "1"):
        return stripped, {"ssl": True}
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return stripped, {"ssl": ctx}


# Tests build their own engine (sqlite+aiosqlite); no production engine under pytest
_is_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

if not _is_pytest:
    from app.settings import settings

    _url, _connect_args = engine_args(settings.database_url)
    engine = create_async_engine(
        _url,
        connect_args=_connect_args,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
else:
    engine = None
    AsyncSessionLocal = None


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# Models are imported in app/main.py and alembic/env.py to avoid circular imports
