"""Push dispatch API."""
from fastapi import APIRouter

from app.api.push import routes_push

router = APIRouter()

router.include_router(routes_push.router, prefix="/push", tags=["push"])
