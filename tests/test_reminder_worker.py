from datetime import timedelta

import pytest

from app.types.reminder_contract import Reminder
from app.workers.reminder import ReminderScheduler

from conftest import NOW


def _reminder(hours=1):
    return Reminder(conversation_id="+6281", fire_at=NOW + timedelta(hours=hours), note="stretch")


@pytest.fixture
def scheduler(timer):
    return ReminderScheduler(timer, clock=lambda: NOW)


def test_schedule_arms_timer_for_delay(scheduler, timer):
    r = _reminder(hours=2)
    assert scheduler.schedule(r, lambda _: None, lambda _: None)
    assert timer.handles[0].delay == pytest.approx(7200)
    assert scheduler.is_scheduled(r.id)


def test_schedule_same_id_twice_is_noop(scheduler, timer):
    r = _reminder()
    assert scheduler.schedule(r, lambda _: None, lambda _: None)
    assert not scheduler.schedule(r, lambda _: None, lambda _: None)
    assert len(timer.handles) == 1
    assert len(scheduler) == 1


def test_stale_reminder_is_not_armed(scheduler, timer):
    assert not scheduler.schedule(_reminder(hours=-1), lambda _: None, lambda _: None)
    assert not scheduler.schedule(_reminder(hours=0), lambda _: None, lambda _: None)
    assert timer.handles == []


@pytest.mark.asyncio
async def test_fire_delivers_then_reports_once(scheduler, timer):
    r = _reminder()
    delivered, fired = [], []

    async def deliver(reminder):
        delivered.append(reminder.id)

    scheduler.schedule(r, deliver, fired.append)
    await timer.fire_all()

    assert delivered == [r.id]
    assert fired == [r.id]
    assert not scheduler.is_scheduled(r.id)


@pytest.mark.asyncio
async def test_failed_delivery_still_reports_fired(scheduler, timer):
    r = _reminder()
    fired = []

    def deliver(reminder):
        raise RuntimeError("send failed")

    scheduler.schedule(r, deliver, fired.append)
    await timer.fire_all()
    assert fired == [r.id]


@pytest.mark.asyncio
async def test_async_on_fired_is_awaited(scheduler, timer):
    r = _reminder()
    fired = []

    async def on_fired(reminder_id):
        fired.append(reminder_id)

    scheduler.schedule(r, lambda _: None, on_fired)
    await timer.fire_all()
    assert fired == [r.id]


@pytest.mark.asyncio
async def test_cancelled_timer_callback_does_nothing(scheduler, timer):
    r = _reminder()
    delivered, fired = [], []
    scheduler.schedule(r, delivered.append, fired.append)
    handle = timer.handles[0]

    assert scheduler.cancel(r.id)
    assert handle.cancelled
    # Simulate a callback that was already queued when the cancel happened.
    await handle.callback()
    assert delivered == [] and fired == []


def test_shutdown_cancels_everything(scheduler, timer):
    for hours in (1, 2, 3):
        scheduler.schedule(_reminder(hours), lambda _: None, lambda _: None)
    scheduler.shutdown()
    assert len(scheduler) == 0
    assert all(h.cancelled for h in timer.handles)
