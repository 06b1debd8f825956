"""
Conversational reply with a three-step degrade ladder.

1. primary model, system prompt + history + new message
2. primary model, system prompt + new message (history dropped)
3. fallback model, system prompt + new message, compatibility mode

The first non-empty reply wins.  Every attempt is isolated: errors and
timeouts count as an empty reply, and if all three are empty the user gets a
fixed apology.  ``get_reply`` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Sequence

from app.services.llm_backend import Backend
from app.types.errors import BackendUnavailable
from app.types.reminder_contract import GenerateOptions, HistoryEntry

_LOGGER = logging.getLogger(__name__)

FALLBACK_REPLY = "Maaf, aku tidak mendapat jawaban. Bisa kirim ulang dengan kalimat lain?"

SHORT_MARKERS = ("singkat", "short", "brief", "tl;dr")
_SHORT_PATTERN = re.compile(r"\b(?:" + "|".join(re.escape(m) for m in SHORT_MARKERS) + r")\b", re.IGNORECASE)

_SYSTEM_PROMPT = (
    "You are a senior software tutor and explainer.\n"
    "Respond in the user's language. Default to detailed, structured answers with:\n"
    "- A short definition\n"
    "- Background/context\n"
    "- Step-by-step reasoning\n"
    "- Real-world examples or analogies\n"
    "- Pros/cons or edge cases when relevant\n"
    "- Clear section headings and bullets when broad\n"
    "Use code blocks when technical. Avoid filler. Keep concise only if the user explicitly asks "
    "(e.g., \"singkat\", \"short\", \"brief\", \"tl;dr\").\n"
    "When asked about your model/version, state the model you are actually running on: \"{model_name}\"."
)


def build_system_prompt(model_name: str) -> str:
    return _SYSTEM_PROMPT.format(model_name=model_name)


def is_short_request(text: str) -> bool:
    return _SHORT_PATTERN.search(text or "") is not None


class ReplyChain:
    def __init__(
        self,
        backend: Backend,
        primary_model: str,
        fallback_model: str,
        *,
        max_tokens: int = 1000,
        attempt_timeout: float = 30.0,
        fallback_text: str = FALLBACK_REPLY,
    ):
        self.backend = backend
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.max_tokens = max_tokens
        self.attempt_timeout = attempt_timeout
        self.fallback_text = fallback_text

    def token_budget(self, short_mode: bool) -> int:
        if short_mode:
            return max(200, self.max_tokens // 3)
        return self.max_tokens

    async def get_reply(
        self,
        conversation_id: str,
        text: str,
        history: Sequence[HistoryEntry] = (),
    ) -> str:
        short_mode = is_short_request(text)
        options = GenerateOptions(max_tokens=self.token_budget(short_mode), short_mode=short_mode)
        user_turn = HistoryEntry(role="user", content=text)
        primary_prompt = build_system_prompt(self.primary_model)

        steps = [
            ("primary", self.primary_model, primary_prompt, [*history, user_turn], options),
            ("primary-short", self.primary_model, primary_prompt, [user_turn], options),
            (
                "fallback",
                self.fallback_model,
                build_system_prompt(self.fallback_model),
                [user_turn],
                options.model_copy(update={"compatibility_mode": True}),
            ),
        ]

        for label, model, prompt, turns, opts in steps:
            reply = await self._attempt(conversation_id, label, model, prompt, turns, opts)
            if reply:
                return reply

        _LOGGER.error("%s", BackendUnavailable(f"no reply for {conversation_id} after {len(steps)} attempts"))
        return self.fallback_text

    async def _attempt(
        self,
        conversation_id: str,
        label: str,
        model: str,
        system_prompt: str,
        turns: List[HistoryEntry],
        options: GenerateOptions,
    ) -> str:
        try:
            reply = await asyncio.wait_for(
                self.backend.generate(model, system_prompt, turns, options),
                timeout=self.attempt_timeout,
            )
        except asyncio.TimeoutError:
            _LOGGER.warning("Reply attempt %s (%s) for %s timed out after %ss", label, model, conversation_id, self.attempt_timeout)
            return ""
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Reply attempt %s (%s) for %s failed: %s", label, model, conversation_id, exc)
            return ""

        reply = (reply or "").strip()
        if not reply:
            _LOGGER.warning("Reply attempt %s (%s) for %s returned empty text", label, model, conversation_id)
        return reply
