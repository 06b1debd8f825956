"""Pydantic models shared by the parser, the store, the scheduler and the
reply chain.

The persisted layout of a reminder uses camelCase keys (``conversationId``,
``fireAt``); Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["user", "assistant"]

DEFAULT_NOTE = "Pengingat"


class Reminder(BaseModel):
    """A durable one-shot reminder. Never mutated once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str = Field(alias="conversationId")
    fire_at: datetime = Field(alias="fireAt")
    note: str = DEFAULT_NOTE

    @field_validator("conversation_id")
    def _non_empty_conversation(cls, v):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("conversationId must be a non-empty string")
        return v

    @field_validator("fire_at")
    def _aware(cls, v):  # noqa: N805
        if v.tzinfo is None:
            raise ValueError("fireAt must be timezone-aware")
        return v

    @field_validator("note")
    def _default_note(cls, v):  # noqa: N805
        return v.strip() or DEFAULT_NOTE


class ParsedReminder(BaseModel):
    """Parser output: when to fire and what to say."""

    fire_at: datetime
    note: str = DEFAULT_NOTE


class HistoryEntry(BaseModel):
    role: Role
    content: str


class GenerateOptions(BaseModel):
    """Per-attempt knobs passed to an LLM backend."""

    max_tokens: int = 1000
    compatibility_mode: bool = False
    short_mode: bool = False
