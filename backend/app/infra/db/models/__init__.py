"""Database models."""
from app.infra.db.models.device_token import DeviceTokenModel
from app.infra.db.models.user_task import UserTaskModel

__all__ = ["DeviceTokenModel", "UserTaskModel"]
