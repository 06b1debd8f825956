"""Outbound delivery. Best effort: failures propagate to the caller, no retries."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from app.utils import sms


class Transport(Protocol):
    async def send(self, conversation_id: str, text: str) -> None: ...


class TelnyxTransport:
    def __init__(self, api_key: Optional[str] = None, from_number: Optional[str] = None):
        self.api_key = api_key
        self.from_number = from_number

    async def send(self, conversation_id: str, text: str) -> None:
        # telnyx is a blocking client; keep it off the event loop.
        await asyncio.to_thread(
            sms.send_sms,
            conversation_id,
            text,
            api_key=self.api_key,
            from_number=self.from_number,
        )
