"""Device token database model (push token registry)."""
from sqlalchemy import Column, DateTime, Index, String, UniqueConstraint

from app.domain.common.types import utcnow
from app.infra.db.base import Base


class DeviceTokenModel(Base):
    """One push token per (user, device). Re-registration updates updated_at."""

    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "fcm_token", name="uq_device_tokens_user_token"),
        Index("ix_device_tokens_fcm_token", "fcm_token"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    fcm_token = Column(String, nullable=False)
    device_platform = Column(String, nullable=False)  # 'ios', 'android' or 'web'
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
