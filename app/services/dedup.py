"""In-process guard against handling the same message id twice."""

from __future__ import annotations

import threading
from typing import Set


class DedupGuard:
    # No eviction: ids accumulate for the lifetime of the process.

    def __init__(self) -> None:
        self._seen: Set[str] = set()
        self._lock = threading.Lock()

    def seen(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._seen

    def mark_seen(self, message_id: str) -> None:
        with self._lock:
            self._seen.add(message_id)

    def check_and_mark(self, message_id: str) -> bool:
        """Mark ``message_id`` as seen; return True if it already was."""
        with self._lock:
            if message_id in self._seen:
                return True
            self._seen.add(message_id)
            return False

    def __len__(self) -> int:
        return len(self._seen)
