"""In-memory reminder scheduling.

The scheduler only knows which reminders have an armed timer.  The store
stays the source of truth: on every process start the router rebuilds the
timers from it, and ``on_fired`` removes each reminder once its timer has run.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from app.types.reminder_contract import Reminder
from app.workers.timers import Timer, TimerHandle

_LOGGER = logging.getLogger(__name__)

Deliver = Callable[[Reminder], Union[Awaitable[Any], Any]]
OnFired = Callable[[str], Union[Awaitable[Any], Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    def __init__(self, timer: Timer, clock: Callable[[], datetime] = _utcnow):
        self._timer = timer
        self._clock = clock
        self._jobs: Dict[str, TimerHandle] = {}

    def schedule(
        self,
        reminder: Reminder,
        deliver: Deliver,
        on_fired: OnFired,
        now: Optional[datetime] = None,
    ) -> bool:
        """Arm a one-shot timer for ``reminder``.

        Returns False without arming anything when a timer for the same id is
        already armed, or when the reminder is not in the future.
        """
        if reminder.id in self._jobs:
            return False

        now = now or self._clock()
        delay = (reminder.fire_at - now).total_seconds()
        if delay <= 0:
            _LOGGER.info("Dropping stale reminder %s (due %s)", reminder.id, reminder.fire_at.isoformat())
            return False

        async def _on_timer() -> None:
            await self._fire(reminder, deliver, on_fired)

        self._jobs[reminder.id] = self._timer.after(delay, _on_timer)
        _LOGGER.info("Reminder %s armed for %s (in %.0fs)", reminder.id, reminder.fire_at.isoformat(), delay)
        return True

    async def _fire(self, reminder: Reminder, deliver: Deliver, on_fired: OnFired) -> None:
        if reminder.id not in self._jobs:
            # Cancelled after the timer had already been queued.
            return
        try:
            result = deliver(reminder)
            if inspect.isawaitable(result):
                await result
            _LOGGER.info("Reminder %s delivered", reminder.id)
        except Exception as exc:  # noqa: BLE001
            # Delivery is attempted once; the reminder is still cleaned up below.
            _LOGGER.error("Failed to deliver reminder %s: %s", reminder.id, exc)
        finally:
            self._jobs.pop(reminder.id, None)
            result = on_fired(reminder.id)
            if inspect.isawaitable(result):
                await result

    def cancel(self, reminder_id: str) -> bool:
        handle = self._jobs.pop(reminder_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_scheduled(self, reminder_id: str) -> bool:
        return reminder_id in self._jobs

    def shutdown(self) -> None:
        for reminder_id in list(self._jobs):
            self.cancel(reminder_id)

    def __len__(self) -> int:
        return len(self._jobs)
