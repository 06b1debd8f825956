"""
Flat JSON reminder store.

The whole pending set lives in one JSON document (a list of reminder objects).
Every mutation is a read-modify-write of the full list followed by an atomic
replace of the file.  Mutations are serialised with a lock because reminder
timers and the message path both write here.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Sequence

from pydantic import TypeAdapter, ValidationError

from app.types.errors import DurableIOFailure
from app.types.reminder_contract import Reminder

_LOGGER = logging.getLogger(__name__)

_REMINDER_LIST = TypeAdapter(List[Reminder])


# ──────────────────────────────────────────────────────────────────────
# 1. File helpers
# ──────────────────────────────────────────────────────────────────────
def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _atomic_write_text(path: Path, text: str) -> None:
    _ensure_dir(path.parent)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent)) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    os.replace(tmp_name, path)


def dump_reminders(reminders: Sequence[Reminder]) -> str:
    return _REMINDER_LIST.dump_json(list(reminders), by_alias=True, indent=2).decode("utf-8")


def parse_reminders(raw: str) -> List[Reminder]:
    return _REMINDER_LIST.validate_json(raw or "[]")


# ──────────────────────────────────────────────────────────────────────
# 2. Store
# ──────────────────────────────────────────────────────────────────────
class ReminderStore:
    """Single source of truth for which reminders exist."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path).resolve()
        self._lock = threading.RLock()

    # 2.1 Read ----------------------------------------------------------
    def load_all(self) -> List[Reminder]:
        """Return every stored reminder in insertion order.

        Creates an empty record on first run.  A corrupt or unreadable record
        is logged and treated as empty.
        """
        with self._lock:
            try:
                if not self.path.exists():
                    _atomic_write_text(self.path, "[]")
                    return []
                return parse_reminders(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError, ValidationError) as exc:
                _LOGGER.error("Failed to load reminders from %s, starting fresh: %s", self.path, exc)
                return []

    # 2.2 Write ---------------------------------------------------------
    def save(self, reminders: Sequence[Reminder]) -> None:
        """Replace the whole record. Raises DurableIOFailure on I/O errors."""
        with self._lock:
            try:
                _atomic_write_text(self.path, dump_reminders(reminders))
            except OSError as exc:
                raise DurableIOFailure(f"could not write {self.path}: {exc}") from exc

    def append(self, reminder: Reminder) -> bool:
        """Persist one more reminder. Returns False if the write failed."""
        with self._lock:
            reminders = self.load_all()
            if any(r.id == reminder.id for r in reminders):
                return True
            reminders.append(reminder)
            try:
                self.save(reminders)
            except DurableIOFailure as exc:
                _LOGGER.error("Reminder %s not persisted: %s", reminder.id, exc)
                return False
            return True

    def remove(self, reminder_id: str) -> bool:
        """Delete a reminder by id.

        Returns True only if the reminder existed and was removed, so a
        second call for the same id is a no-op.
        """
        with self._lock:
            reminders = self.load_all()
            remaining = [r for r in reminders if r.id != reminder_id]
            if len(remaining) == len(reminders):
                return False
            try:
                self.save(remaining)
            except DurableIOFailure as exc:
                _LOGGER.error("Reminder %s not removed from store: %s", reminder_id, exc)
                return False
            return True

    def count(self) -> int:
        return len(self.load_all())
