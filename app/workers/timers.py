"""One-shot timer backends for reminder delivery.

Anything with ``after(delay_seconds, callback) -> handle`` (where the handle has
``cancel()``) can drive :class:`app.workers.reminder.ReminderScheduler`.  The
production backend arms an APScheduler ``DateTrigger`` job on the running
asyncio loop; timers are never persisted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

_LOGGER = logging.getLogger(__name__)

TimerCallback = Callable[[], Union[Awaitable[Any], Any]]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    def after(self, delay_seconds: float, callback: TimerCallback) -> TimerHandle: ...


class _JobHandle:
    def __init__(self, job):
        self._job = job

    def cancel(self) -> None:
        try:
            self._job.remove()
        except JobLookupError:
            # Already fired or removed.
            pass


class APSchedulerTimer:
    """Timer backed by an in-memory ``AsyncIOScheduler``."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            _LOGGER.info("Reminder timer backend started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            _LOGGER.info("Reminder timer backend stopped")

    def after(self, delay_seconds: float, callback: TimerCallback) -> _JobHandle:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(0.0, delay_seconds))
        job = self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            misfire_grace_time=None,
        )
        return _JobHandle(job)
