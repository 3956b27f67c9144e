"""Main FastAPI application."""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.settings import settings
from app.api.devices import router as devices_router
from app.api.jobs import router as jobs_router
from app.api.push import router as push_router
from app.api.reminders import router as reminders_router
from app.domain.common.errors import (
    AuthorizationError,
    ConfigurationError,
    ProviderAuthError,
    ValidationError,
)
from app.infra.db import base as db_base
# Import all models to ensure they're registered with Base
from app.infra.db.models import DeviceTokenModel, UserTaskModel  # noqa: F401

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_registry_tables(sync_conn) -> None:
    """Create the device_tokens table. user_tasks is owned by the reminder store."""
    db_base.Base.metadata.create_all(sync_conn, tables=[DeviceTokenModel.__table__])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    if db_base.engine is not None:
        try:
            async with db_base.engine.begin() as conn:
                await conn.run_sync(create_registry_tables)
        except Exception as e:
            # Database might not be ready yet; requests will fail until it is
            logger.warning("Could not connect to database during startup: %s", e)

    if not (settings.firebase_service_account or settings.firebase_service_account_path):
        logger.warning("FIREBASE_SERVICE_ACCOUNT not configured; push dispatch will fail until it is set")

    yield

    if db_base.engine is not None:
        await db_base.engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r".*",
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    max_age=3600,
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.info(f"📥 [SERVER REQUEST] {request.method} {request.url.path}")

        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            logger.debug(f"   Authorization: Bearer {token[:20]}..." if len(token) > 20 else "   Authorization: Bearer ***")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"📤 [SERVER RESPONSE] {request.method} {request.url.path} - {response.status_code} ({process_time:.3f}s)"
        )
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


# Domain error handlers: map domain exceptions to HTTP status with an {"error": ...} body
@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    """Malformed request body."""
    logger.warning(f"❌ [VALIDATION ERROR] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(ConfigurationError)
async def configuration_handler(request: Request, exc: ConfigurationError):
    """Provider credentials missing or unusable."""
    logger.error(f"❌ [CONFIG ERROR] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.exception_handler(ProviderAuthError)
async def provider_auth_handler(request: Request, exc: ProviderAuthError):
    """Provider rejected the credential exchange."""
    logger.error(f"❌ [PROVIDER AUTH] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=502, content={"error": exc.message})


@app.exception_handler(AuthorizationError)
async def authorization_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"error": exc.message})


# Health check (root and under /v1)
@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


@app.get("/ready")
async def readiness():
    """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
    from app.readiness import run_all_checks_async, is_ready
    checks = await run_all_checks_async()
    ready, summary = is_ready(checks)
    if ready:
        return {"ready": True, "checks": summary}
    return JSONResponse(status_code=503, content={"ready": False, "checks": summary})


# API v1 routes
app.include_router(devices_router, prefix=settings.api_v1_prefix)
app.include_router(push_router, prefix=settings.api_v1_prefix)
app.include_router(jobs_router, prefix=settings.api_v1_prefix)
app.include_router(reminders_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
