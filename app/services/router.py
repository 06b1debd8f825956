"""
Message intake.

``MessageRouter.on_message`` is the single entry point for inbound chat
messages.  Each message is either dropped (self-sent, already seen, outside the
monitored conversation, empty) or answered with exactly one reply text:

* reminder branch: parse → reject past times → persist → arm timer → confirm
* conversation branch: record the user turn → fallback chain → record the
  assistant turn → reply

The router owns no module-level state; every collaborator is injected so
several independent routers can live side by side (e.g. in tests).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from app.services.dedup import DedupGuard
from app.services.history import HistoryCache
from app.services.llm_backend import OpenAIBackend
from app.services.reminder_parser import ReminderParser
from app.services.reply_chain import ReplyChain
from app.services.transport import TelnyxTransport, Transport
from app.types.errors import ReminderError, TimeAlreadyPast
from app.types.reminder_contract import Reminder
from app.utils.timefmt import format_label
from app.workers.reminder import ReminderScheduler
from app.workers.timers import Timer
from db import ReminderStore

_LOGGER = logging.getLogger(__name__)

EXAMPLE_USAGE = 'Contoh: "ingatkan saya besok jam 8 pagi olahraga" atau "remind me tomorrow 8pm call mom".'
ERROR_REPLY = "Maaf, terjadi error saat memproses pesan."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRouter:
    def __init__(
        self,
        *,
        parser: ReminderParser,
        store: ReminderStore,
        scheduler: ReminderScheduler,
        history: HistoryCache,
        chain: ReplyChain,
        transport: Transport,
        dedup: Optional[DedupGuard] = None,
        monitored_conversation: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.parser = parser
        self.store = store
        self.scheduler = scheduler
        self.history = history
        self.chain = chain
        self.transport = transport
        self.dedup = dedup or DedupGuard()
        self.monitored_conversation = monitored_conversation
        self._clock = clock

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------
    def accepts(self, conversation_id: str) -> bool:
        if not self.monitored_conversation:
            return True
        return conversation_id == self.monitored_conversation

    def admit(
        self,
        conversation_id: str,
        sender_is_self: bool,
        message_id: Optional[str],
        text: Optional[str],
    ) -> Optional[str]:
        """Apply the intake filters; return the trimmed text, or None to drop.

        Marks ``message_id`` as seen, so a redelivered message is dropped even
        while the first delivery is still being answered.
        """
        _LOGGER.debug("[message] id=%s conversation=%s self=%s body=%r", message_id, conversation_id, sender_is_self, text)

        if sender_is_self:
            _LOGGER.debug("[message] skipped: from self")
            return None
        if message_id and self.dedup.check_and_mark(message_id):
            _LOGGER.info("[message] skipped: %s already processed", message_id)
            return None
        if not self.accepts(conversation_id):
            _LOGGER.debug("[message] skipped: %s is not the monitored conversation", conversation_id)
            return None
        text = (text or "").strip()
        if not text:
            _LOGGER.debug("[message] skipped: empty text")
            return None
        return text

    async def handle(self, conversation_id: str, text: str, now: Optional[datetime] = None) -> str:
        """Answer an admitted message with exactly one reply text."""
        now = now or self._clock()
        try:
            parsed = self.parser.parse(text, now)
        except ReminderError as exc:
            _LOGGER.info("[reminder] %s rejected: %s", conversation_id, exc.message)
            return f"{exc.message}\n{EXAMPLE_USAGE}"

        if parsed is None:
            return await self._converse(conversation_id, text)

        if parsed.fire_at <= now:
            _LOGGER.info("[reminder] %s resolved to past time %s", conversation_id, parsed.fire_at.isoformat())
            return TimeAlreadyPast().message

        reminder = Reminder(conversation_id=conversation_id, fire_at=parsed.fire_at, note=parsed.note)
        await asyncio.to_thread(self.store.append, reminder)
        self.scheduler.schedule(reminder, self.deliver, self._on_fired, now=now)
        return f"Siap, akan diingatkan pada {format_label(reminder.fire_at, self.parser.timezone)}."

    async def on_message(
        self,
        conversation_id: str,
        sender_is_self: bool,
        message_id: Optional[str],
        text: Optional[str],
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Return the reply for an inbound message, or None to stay silent."""
        admitted = self.admit(conversation_id, sender_is_self, message_id, text)
        if admitted is None:
            return None
        return await self.handle(conversation_id, admitted, now)

    async def _converse(self, conversation_id: str, text: str) -> str:
        history = self.history.get(conversation_id)
        # Recorded before the call so a failed reply still leaves the question in context.
        self.history.append(conversation_id, "user", text)
        try:
            reply = await self.chain.get_reply(conversation_id, text, history)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error handling message for %s: %s", conversation_id, exc)
            return ERROR_REPLY
        self.history.append(conversation_id, "assistant", reply)
        return reply

    # ------------------------------------------------------------------
    # Reminder delivery
    # ------------------------------------------------------------------
    def delivery_text(self, reminder: Reminder) -> str:
        return f"⏰ Pengingat ({format_label(reminder.fire_at, self.parser.timezone)}): {reminder.note}"

    async def deliver(self, reminder: Reminder) -> None:
        await self.transport.send(reminder.conversation_id, self.delivery_text(reminder))

    async def _on_fired(self, reminder_id: str) -> None:
        if not await asyncio.to_thread(self.store.remove, reminder_id):
            _LOGGER.debug("Reminder %s already gone from store", reminder_id)

    async def restore(self, now: Optional[datetime] = None) -> int:
        """Re-arm timers for stored reminders; prune the ones already due.

        Returns the number of timers armed.
        """
        now = now or self._clock()
        armed = 0
        for reminder in await asyncio.to_thread(self.store.load_all):
            if reminder.fire_at > now:
                if self.scheduler.schedule(reminder, self.deliver, self._on_fired, now=now):
                    armed += 1
            else:
                _LOGGER.info("Pruning stale reminder %s (due %s)", reminder.id, reminder.fire_at.isoformat())
                await asyncio.to_thread(self.store.remove, reminder.id)
        _LOGGER.info("Restored %d reminder timer(s)", armed)
        return armed


# ──────────────────────────────────────────────────────────────────────────
# Factory
# ──────────────────────────────────────────────────────────────────────────

def create_router(settings, timer: Timer) -> MessageRouter:
    """Wire a router from a settings object (see ``config.Settings``)."""
    backend = OpenAIBackend(
        settings.OPENAI_API_KEY,
        timeout=settings.OPENAI_TIMEOUT,
        verbosity=settings.OPENAI_VERBOSITY,
        reasoning_effort=settings.OPENAI_REASONING_EFFORT,
        transport_retries=settings.OPENAI_TRANSPORT_RETRIES,
    )
    return MessageRouter(
        parser=ReminderParser(timezone=settings.DEFAULT_TIMEZONE),
        store=ReminderStore(settings.REMINDERS_PATH),
        scheduler=ReminderScheduler(timer),
        history=HistoryCache(settings.MAX_HISTORY),
        chain=ReplyChain(
            backend,
            settings.OPENAI_MODEL,
            settings.OPENAI_FALLBACK_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            attempt_timeout=settings.OPENAI_TIMEOUT,
        ),
        transport=TelnyxTransport(settings.TELNYX_API_KEY, settings.TELNYX_FROM_NUMBER),
        monitored_conversation=settings.MONITORED_CONVERSATION,
    )
