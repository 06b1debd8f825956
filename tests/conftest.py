from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from app.services.dedup import DedupGuard
from app.services.history import HistoryCache
from app.services.reminder_parser import ReminderParser
from app.services.reply_chain import ReplyChain
from app.services.router import MessageRouter
from app.workers.reminder import ReminderScheduler
from db import ReminderStore

JAKARTA = ZoneInfo("Asia/Jakarta")
NOW = datetime(2024, 1, 1, 0, 0, tzinfo=JAKARTA)


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeTimer:
    """Records armed timers; tests fire them explicitly."""

    def __init__(self):
        self.handles = []
        self.started = False

    def start(self):
        self.started = True

    def shutdown(self):
        self.started = False

    def after(self, delay_seconds, callback):
        handle = FakeHandle(delay_seconds, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and not h.fired]

    async def fire_all(self):
        for handle in self.pending:
            handle.fired = True
            await handle.callback()


class FakeBackend:
    """Returns canned replies per model; records every call."""

    def __init__(self, replies=None, error=None):
        self.replies = {model: list(values) for model, values in (replies or {}).items()}
        self.error = error
        self.calls = []

    async def generate(self, model, system_prompt, turns, options):
        self.calls.append({"model": model, "system_prompt": system_prompt, "turns": list(turns), "options": options})
        if self.error is not None:
            raise self.error
        queue = self.replies.get(model) or [""]
        return queue.pop(0) if len(queue) > 1 else queue[0]


class FakeTransport:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send(self, conversation_id, text):
        if self.fail:
            raise RuntimeError("transport down")
        self.sent.append((conversation_id, text))


class CountingParser(ReminderParser):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    def parse(self, text, now):
        self.calls += 1
        return super().parse(text, now)


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def backend():
    return FakeBackend({"primary": ["Halo!"]})


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store(tmp_path):
    return ReminderStore(tmp_path / "data" / "reminders.json")


@pytest.fixture
def router(store, timer, backend, transport):
    return MessageRouter(
        parser=CountingParser(timezone="Asia/Jakarta"),
        store=store,
        scheduler=ReminderScheduler(timer, clock=lambda: NOW),
        history=HistoryCache(6),
        chain=ReplyChain(backend, "primary", "fallback", attempt_timeout=1.0),
        transport=transport,
        dedup=DedupGuard(),
        clock=lambda: NOW,
    )
