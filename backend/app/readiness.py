"""
Readiness: can this instance dispatch pushes right now?

Four required checks: settings are usable, runtime packages import, the token registry
table answers a query, and the Firebase service account loads and can sign.
"""
import asyncio
import importlib
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from app.domain.common.errors import ConfigurationError

logger = logging.getLogger(__name__)

# (passed, message)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]

REQUIRED_CHECKS = ("config", "packages", "database", "push_credentials")
RUNTIME_PACKAGES = ("uvicorn", "sqlalchemy", "httpx", "google.auth", "jose", "yaml")


def check_config() -> CheckResult:
    """Settings load, the scan timezone exists and the FCM URL template names the project."""
    from app.settings import get_settings
    try:
        s = get_settings()
        ZoneInfo(s.scan_timezone)
    except ZoneInfoNotFoundError:
        return False, f"unknown scan_timezone {s.scan_timezone!r}"
    except Exception as e:
        return False, str(e)
    if "{project_id}" not in s.fcm_send_url_template:
        return False, "fcm_send_url_template must contain {project_id}"
    return True, "ok"


def check_packages() -> CheckResult:
    missing = []
    for name in RUNTIME_PACKAGES:
        try:
            importlib.import_module(name)
        except ImportError:
            missing.append(name)
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "ok"


async def check_database_async() -> CheckResult:
    """Query the token registry table."""
    from app.infra.db.base import engine_args
    from app.settings import get_settings

    engine = None
    try:
        url, connect_args = engine_args(get_settings().database_url)
        engine = create_async_engine(url, connect_args=connect_args)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM device_tokens LIMIT 1"))
    except Exception as e:
        logger.warning("Readiness database check failed: %s", e)
        return False, str(e)
    finally:
        if engine is not None:
            await engine.dispose()
    return True, "ok"


def check_push_credentials() -> CheckResult:
    """The service account must load and carry a usable private key."""
    from app.infra.push.oauth import build_assertion
    from app.infra.push.service_account import load_from_settings
    from app.settings import get_settings
    try:
        build_assertion(load_from_settings(get_settings()))
    except ConfigurationError as e:
        return False, e.message
    return True, "ok"


async def run_all_checks_async() -> ChecksDict:
    """All checks, from an async context (GET /ready)."""
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": await check_database_async(),
        "push_credentials": check_push_credentials(),
    }


def run_all_checks() -> ChecksDict:
    """All checks, from sync code (scripts, tests)."""
    return asyncio.run(run_all_checks_async())


def is_ready(checks: ChecksDict | None = None) -> tuple[bool, dict[str, str]]:
    """(ready, name -> "ok" or error message). Ready when every required check passed."""
    if checks is None:
        checks = run_all_checks()
    summary = {name: message for name, (_, message) in checks.items()}
    ready = all(checks.get(name, (False, ""))[0] for name in REQUIRED_CHECKS)
    return ready, summary
