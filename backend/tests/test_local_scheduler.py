"""Tests for the device-local scheduling client."""
from datetime import date, datetime, timedelta

import pytest

from app.client.capability import (
    CapabilityDescriptor,
    LocalEvent,
    NullLocalNotificationCapability,
    PermissionState,
    select_local_capability,
)
from app.client.local_scheduler import (
    ADVANCE_BODY,
    ADVANCE_TITLE,
    DUE_TODAY_TITLE,
    LocalSchedulingClient,
    derive_notification_id,
)
from app.domain.notifications.models import DevicePlatform, DueTaskRecord

ANDROID = CapabilityDescriptor(is_native=True, platform=DevicePlatform.ANDROID)
TASK_ID = "1a2b3c4d-0000-4000-8000-000000000000"


class FakeLocalNotifications:
    """In-memory local notification store."""

    def __init__(self, permission=PermissionState.GRANTED, grant_on_request=True):
        self.permission = permission
        self.grant_on_request = grant_on_request
        self.scheduled = {}
        self.cancelled = []
        self.listeners = {}

    async def check_permissions(self):
        return self.permission

    async def request_permissions(self):
        if self.grant_on_request:
            self.permission = PermissionState.GRANTED
        else:
            self.permission = PermissionState.DENIED
        return self.permission

    async def schedule(self, notifications):
        for n in notifications:
            self.scheduled[n.id] = n

    async def cancel(self, ids):
        self.cancelled.extend(ids)
        for i in ids:
            self.scheduled.pop(i, None)

    def add_listener(self, event, listener):
        self.listeners.setdefault(event, []).append(listener)


def _client(fake, now, descriptor=ANDROID):
    return LocalSchedulingClient(fake, descriptor, now=lambda: now)


# --- id derivation ---

def test_derive_notification_id_reads_first_eight_hex_chars():
    assert derive_notification_id(TASK_ID) == 0x1A2B3C4D
    assert derive_notification_id(TASK_ID) == derive_notification_id(TASK_ID)


def test_derive_notification_id_stops_at_first_non_hex():
    assert derive_notification_id("abc-1234-ffff") == 0xABC


def test_derive_notification_id_rejects_non_hex_prefix():
    with pytest.raises(ValueError):
        derive_notification_id("zzzzzzzz")


@pytest.mark.parametrize("task_id", [TASK_ID, "ffffffff-aaaa", "0", "deadbeef"])
def test_advance_id_never_collides_with_due_id(task_id):
    assert derive_notification_id(task_id) + 1 != derive_notification_id(task_id)


# --- due-date notification ---

async def test_schedules_due_notification_at_eight():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    assert await client.schedule_reminder_notification(TASK_ID, "clean gutters", "", date(2026, 3, 5))

    entry = fake.scheduled[0x1A2B3C4D]
    assert entry.fire_at == datetime(2026, 3, 5, 8, 0)
    assert entry.title == DUE_TODAY_TITLE
    assert entry.body == "Your task to clean gutters is due today."
    assert entry.extra == {"taskId": TASK_ID, "action": "openReminder"}


async def test_rescheduling_replaces_entry():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    await client.schedule_reminder_notification(TASK_ID, "clean gutters", "", date(2026, 3, 5))
    await client.schedule_reminder_notification(TASK_ID, "clean gutters", "", date(2026, 3, 9))

    assert list(fake.scheduled) == [0x1A2B3C4D]
    assert fake.scheduled[0x1A2B3C4D].fire_at == datetime(2026, 3, 9, 8, 0)


async def test_due_today_after_eight_fires_in_one_second():
    fake = FakeLocalNotifications()
    now = datetime(2026, 3, 5, 10, 30)
    client = _client(fake, now)

    assert await client.schedule_reminder_notification(TASK_ID, "mow", "", date(2026, 3, 5))

    assert fake.scheduled[0x1A2B3C4D].fire_at == now + timedelta(seconds=1)


async def test_past_due_date_is_skipped():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 5, 10, 30))

    assert not await client.schedule_reminder_notification(TASK_ID, "mow", "", date(2026, 3, 4))
    assert fake.scheduled == {}


async def test_accepts_datetime_due_date():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    await client.schedule_reminder_notification(TASK_ID, "mow", "", datetime(2026, 3, 5, 23, 0))

    assert fake.scheduled[0x1A2B3C4D].fire_at == datetime(2026, 3, 5, 8, 0)


# --- advance notification ---

@pytest.mark.parametrize("difficulty", ["Medium", "Hard", "hard"])
async def test_advance_notification_week_before_at_nine(difficulty):
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    assert await client.schedule_advance_notification(TASK_ID, "paint", date(2026, 3, 20), difficulty)

    entry = fake.scheduled[0x1A2B3C4D + 1]
    assert entry.fire_at == datetime(2026, 3, 13, 9, 0)
    assert (entry.title, entry.body) == (ADVANCE_TITLE, ADVANCE_BODY)


@pytest.mark.parametrize("due", [date(2026, 3, 20), date(2027, 1, 1), date(2026, 3, 2)])
async def test_easy_never_gets_advance_notification(due):
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    assert not await client.schedule_advance_notification(TASK_ID, "bulb", due, "Easy")
    assert fake.scheduled == {}


async def test_advance_time_already_passed_is_skipped():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 14, 12, 0))

    assert not await client.schedule_advance_notification(TASK_ID, "paint", date(2026, 3, 20), "Hard")
    assert fake.scheduled == {}


# --- cancel ---

async def test_cancel_before_scheduling_is_noop():
    fake = FakeLocalNotifications()
    await _client(fake, datetime(2026, 3, 1)).cancel_notification(TASK_ID)
    assert fake.cancelled == [0x1A2B3C4D, 0x1A2B3C4D + 1]


async def test_cancel_removes_both_entries():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))
    await client.schedule_reminder_notification(TASK_ID, "paint", "", date(2026, 3, 20))
    await client.schedule_advance_notification(TASK_ID, "paint", date(2026, 3, 20), "Hard")

    await client.cancel_notification(TASK_ID)

    assert fake.scheduled == {}


async def test_cancel_with_bad_id_does_not_raise():
    await _client(FakeLocalNotifications(), datetime(2026, 3, 1)).cancel_notification("not-hex")


# --- capability absent ---

async def test_no_permission_is_silent_noop():
    fake = FakeLocalNotifications(permission=PermissionState.PROMPT, grant_on_request=False)
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    assert not await client.schedule_reminder_notification(TASK_ID, "mow", "", date(2026, 3, 5))
    assert not await client.schedule_advance_notification(TASK_ID, "mow", date(2026, 3, 20), "Hard")
    assert fake.scheduled == {}


async def test_permission_requested_when_not_yet_granted():
    fake = FakeLocalNotifications(permission=PermissionState.PROMPT)
    client = _client(fake, datetime(2026, 3, 1, 12, 0))

    assert await client.schedule_reminder_notification(TASK_ID, "mow", "", date(2026, 3, 5))


async def test_web_host_uses_null_capability():
    descriptor = CapabilityDescriptor.web()
    capability = select_local_capability(descriptor, lambda: pytest.fail("native factory called"))
    assert isinstance(capability, NullLocalNotificationCapability)

    client = LocalSchedulingClient(capability, descriptor, now=lambda: datetime(2026, 3, 1))
    assert not await client.schedule_reminder_notification(TASK_ID, "mow", "", date(2026, 3, 5))
    await client.cancel_notification(TASK_ID)


# --- bulk + taps ---

async def test_schedule_all_only_for_current_user():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1, 12, 0))
    tasks = [
        DueTaskRecord(id="aaaa0001", user_id="me", title="Paint", difficulty="Hard", due_date=date(2026, 3, 20)),
        DueTaskRecord(id="bbbb0002", user_id="me", title=None, due_date=date(2026, 3, 5)),
        DueTaskRecord(id="cccc0003", user_id="someone-else", title="Mow", difficulty="Hard", due_date=date(2026, 3, 20)),
    ]

    assert await client.schedule_all_task_notifications(tasks, "me") == 3

    assert set(fake.scheduled) == {0xAAAA0001, 0xAAAA0002, 0xBBBB0002}
    assert fake.scheduled[0xBBBB0002].body == "Your task to Reminder is due today."


async def test_tap_listener_forwards_open_reminder_taps():
    fake = FakeLocalNotifications()
    client = _client(fake, datetime(2026, 3, 1))
    tapped = []
    client.add_tap_listener(tapped.append)

    listener = fake.listeners[LocalEvent.NOTIFICATION_TAPPED][0]
    await listener({"notification": {"extra": {"taskId": TASK_ID, "action": "openReminder"}}})
    await listener({"notification": {"extra": {"taskId": TASK_ID, "action": "other"}}})
    await listener({"notification": {}})

    assert tapped == [TASK_ID]
