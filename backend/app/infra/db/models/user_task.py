"""User task database model.

Owned by the reminder CRUD surface; the push pipeline only reads the columns the
due-task scan filters on.
"""
from sqlalchemy import Boolean, Column, Date, DateTime, String, Text

from app.domain.common.types import utcnow
from app.infra.db.base import Base


class UserTaskModel(Base):
    """Household task assigned to a family member."""

    __tablename__ = "user_tasks"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)  # assignee
    family_id = Column(String, nullable=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    difficulty = Column(String, nullable=True)  # 'Easy', 'Medium', 'Hard'
    due_date = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=True, default="pending")
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
