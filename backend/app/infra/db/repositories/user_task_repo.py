"""User task repository (read side used by the due-task scan)."""
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.notifications.models import DueTaskRecord
from app.infra.db.models.user_task import UserTaskModel

PENDING_STATUS = "pending"


class UserTaskRepository:
    """Due-task query over user_tasks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_due(
        self, due_on: date, difficulties: Optional[Iterable[str]] = None
    ) -> List[DueTaskRecord]:
        """Pending, enabled tasks due on the date; optional difficulty filter."""
        q = select(
            UserTaskModel.id,
            UserTaskModel.user_id,
            UserTaskModel.title,
            UserTaskModel.difficulty,
            UserTaskModel.due_date,
        ).where(
            UserTaskModel.due_date == due_on,
            UserTaskModel.status == PENDING_STATUS,
            UserTaskModel.enabled.is_(True),
        )
        if difficulties is not None:
            q = q.where(UserTaskModel.difficulty.in_([str(getattr(d, "value", d)) for d in difficulties]))
        result = await self.session.execute(q.order_by(UserTaskModel.created_at))
        return [
            DueTaskRecord(
                id=row.id,
                user_id=row.user_id,
                title=row.title,
                difficulty=row.difficulty,
                due_date=row.due_date,
            )
            for row in result.all()
        ]
