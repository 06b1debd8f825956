"""Rolling per-conversation history used as LLM context."""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List

from app.types.reminder_contract import HistoryEntry


class HistoryCache:
    """Keeps the ``max_messages`` most recent turns per conversation.

    Older turns are dropped silently; nothing is persisted.
    """

    def __init__(self, max_messages: int = 6):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self._store: Dict[str, Deque[HistoryEntry]] = {}

    def append(self, conversation_id: str, role: str, content: str) -> None:
        if not conversation_id or not role or not content:
            return
        turns = self._store.setdefault(conversation_id, deque(maxlen=self.max_messages))
        turns.append(HistoryEntry(role=role, content=content))

    def get(self, conversation_id: str) -> List[HistoryEntry]:
        """Oldest to newest; a copy, so callers may keep it across appends."""
        return list(self._store.get(conversation_id, ()))

    def clear(self, conversation_id: str) -> None:
        self._store.pop(conversation_id, None)
