"""Devices API."""
from fastapi import APIRouter

from app.api.devices import routes_devices

router = APIRouter()

router.include_router(routes_devices.router, prefix="/devices", tags=["devices"])
