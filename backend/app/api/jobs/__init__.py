"""Scheduled jobs API."""
from fastapi import APIRouter

from app.api.jobs import routes_jobs

router = APIRouter()

router.include_router(routes_jobs.router, prefix="/jobs", tags=["jobs"])
