"""Reminder events API."""
from fastapi import APIRouter

from app.api.reminders import routes_events

router = APIRouter()

router.include_router(routes_events.router, prefix="/reminders", tags=["reminders"])
