"""Tests for the due-task scan job."""
import itertools
from datetime import date, datetime, timedelta

import pytest

from app.domain.common.types import generate_id
from app.domain.notifications.models import DevicePlatform, DueTaskRecord
from app.infra.db.models.user_task import UserTaskModel
from app.infra.db.repositories.device_token_repo import DeviceTokenRepository
from app.infra.db.repositories.user_task_repo import UserTaskRepository
from app.services.dispatch_service import DispatchService
from app.services.due_task_scan import (
    DUE_TODAY_TITLE,
    UPCOMING_TITLE,
    DueTaskScanJob,
    due_today_body,
    group_by_user,
    upcoming_body,
)

TODAY = date(2026, 3, 2)
NEXT_WEEK = TODAY + timedelta(days=7)
_created = itertools.count()


class RecordingDispatcher:
    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    async def send(self, user_ids, title, body, data=None):
        self.calls.append({"user_ids": list(user_ids), "title": title, "body": body, "data": data})
        if user_ids[0] in self.fail_for:
            raise RuntimeError("provider down")


class BrokenTaskQuery:
    async def list_due(self, due_on, difficulties=None):
        raise RuntimeError("relation user_tasks does not exist")


async def _add_task(session, user_id, title, due_date, difficulty="Easy", status="pending", enabled=True):
    task = UserTaskModel(
        id=generate_id(),
        user_id=user_id,
        title=title,
        difficulty=difficulty,
        due_date=due_date,
        status=status,
        enabled=enabled,
        created_at=datetime(2026, 1, 1) + timedelta(seconds=next(_created)),
    )
    session.add(task)
    await session.commit()
    return task


def _record(task_id, user_id, title="Task"):
    return DueTaskRecord(id=task_id, user_id=user_id, title=title)


def test_group_by_user_keeps_order_and_skips_unassigned():
    grouped = group_by_user([_record("1", "a"), _record("2", None), _record("3", "b"), _record("4", "a")])
    assert list(grouped) == ["a", "b"]
    assert [t.id for t in grouped["a"]] == ["1", "4"]


def test_message_bodies():
    one = [_record("1", "a", "Clean gutters")]
    two = [_record("1", "a", "Clean gutters"), _record("2", "a", None)]
    assert due_today_body(one) == 'Your task "Clean gutters" is due today'
    assert due_today_body(two) == "You have 2 tasks due today: Clean gutters, Reminder"
    assert upcoming_body(one) == 'Your task "Clean gutters" is due next week. Make sure you have everything ready!'
    assert upcoming_body(two) == "You have 2 big tasks due next week: Clean gutters, Reminder"


async def test_list_due_filters_status_enabled_and_difficulty(db_session):
    await _add_task(db_session, "u1", "pending", TODAY)
    await _add_task(db_session, "u1", "done", TODAY, status="completed")
    await _add_task(db_session, "u1", "disabled", TODAY, enabled=False)
    await _add_task(db_session, "u1", "tomorrow", TODAY + timedelta(days=1))
    await _add_task(db_session, "u2", "easy", NEXT_WEEK, difficulty="Easy")
    await _add_task(db_session, "u2", "hard", NEXT_WEEK, difficulty="Hard")

    repo = UserTaskRepository(db_session)
    assert [t.title for t in await repo.list_due(TODAY)] == ["pending"]
    assert [t.title for t in await repo.list_due(NEXT_WEEK, difficulties=["Medium", "Hard"])] == ["hard"]


async def test_scan_groups_and_dispatches_once_per_user_per_class(db_session):
    first = await _add_task(db_session, "u1", "Clean gutters", TODAY)
    await _add_task(db_session, "u1", "Change filter", TODAY)
    await _add_task(db_session, "u2", "Mow lawn", TODAY)
    upcoming = await _add_task(db_session, "u3", "Paint fence", NEXT_WEEK, difficulty="Medium")
    dispatcher = RecordingDispatcher()

    summary = await DueTaskScanJob(UserTaskRepository(db_session), dispatcher).run(TODAY)

    assert summary.model_dump() == {
        "success": True,
        "due_today_users": 2,
        "due_today_tasks": 3,
        "upcoming_users": 1,
        "upcoming_tasks": 1,
        "notifications_sent": 3,
        "dispatch_attempts": 3,
    }
    u1 = next(c for c in dispatcher.calls if c["user_ids"] == ["u1"])
    assert u1["title"] == DUE_TODAY_TITLE
    assert u1["body"] == "You have 2 tasks due today: Clean gutters, Change filter"
    assert u1["data"] == {"taskId": first.id, "action": "openReminder"}
    u3 = next(c for c in dispatcher.calls if c["user_ids"] == ["u3"])
    assert u3["title"] == UPCOMING_TITLE
    assert u3["data"]["taskId"] == upcoming.id


async def test_easy_task_next_week_is_not_dispatched(db_session):
    # scenario B
    await _add_task(db_session, "u1", "Replace bulb", NEXT_WEEK, difficulty="Easy")
    dispatcher = RecordingDispatcher()

    summary = await DueTaskScanJob(UserTaskRepository(db_session), dispatcher).run(TODAY)

    assert dispatcher.calls == []
    assert summary.upcoming_tasks == 0
    assert summary.notifications_sent == 0


async def test_per_user_failure_is_isolated(db_session):
    await _add_task(db_session, "u1", "A", TODAY)
    await _add_task(db_session, "u2", "B", TODAY)
    dispatcher = RecordingDispatcher(fail_for={"u1"})

    summary = await DueTaskScanJob(UserTaskRepository(db_session), dispatcher).run(TODAY)

    assert summary.dispatch_attempts == 2
    assert summary.notifications_sent == 1


async def test_query_failure_propagates():
    with pytest.raises(RuntimeError):
        await DueTaskScanJob(BrokenTaskQuery(), RecordingDispatcher()).run(TODAY)


async def test_uses_injected_today(db_session):
    await _add_task(db_session, "u1", "A", TODAY)
    dispatcher = RecordingDispatcher()

    summary = await DueTaskScanJob(UserTaskRepository(db_session), dispatcher, today=lambda: TODAY).run()

    assert summary.due_today_users == 1


async def test_running_twice_sends_twice(db_session):
    await _add_task(db_session, "u1", "A", TODAY)
    dispatcher = RecordingDispatcher()
    job = DueTaskScanJob(UserTaskRepository(db_session), dispatcher)

    await job.run(TODAY)
    await job.run(TODAY)

    assert len(dispatcher.calls) == 2


async def test_hard_task_due_today_reaches_both_devices(db_session, fcm_provider, fake_fcm):
    # scenario A
    await _add_task(db_session, "u1", "Clean chimney", TODAY, difficulty="Hard")
    tokens = DeviceTokenRepository(db_session)
    await tokens.upsert("u1", "phone", DevicePlatform.ANDROID)
    await tokens.upsert("u1", "tablet", DevicePlatform.IOS)
    dispatcher = DispatchService(tokens, fcm_provider)

    summary = await DueTaskScanJob(UserTaskRepository(db_session), dispatcher).run(TODAY)

    assert summary.due_today_users == 1
    assert summary.notifications_sent == 1
    assert sorted(fake_fcm.sent_tokens) == ["phone", "tablet"]
    assert fake_fcm.messages[0]["notification"]["body"] == 'Your task "Clean chimney" is due today'
