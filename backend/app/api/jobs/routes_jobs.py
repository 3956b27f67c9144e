"""Scheduled job routes (invoked by an external cron trigger)."""
import logging

from fastapi import APIRouter, Depends

from app.api.deps import Caller, get_scan_job, require_service
from app.domain.notifications.models import ScanSummary
from app.services.due_task_scan import DueTaskScanJob

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/check-due-reminders", response_model=ScanSummary)
async def check_due_reminders(
    caller: Caller = Depends(require_service),
    job: DueTaskScanJob = Depends(get_scan_job),
):
    """Run one due-task scan cycle. No request body."""
    logger.info("⏰ [SCAN] check-due-reminders triggered")
    return await job.run()
