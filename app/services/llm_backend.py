"""
LLM backend used by the reply fallback chain.

One ``generate`` call is one request to the OpenAI Responses API.  Primary and
fallback models go through the same code path; ``compatibility_mode`` strips
the parameters newer models accept but older ones may reject.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence

import openai
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from app.types.reminder_contract import GenerateOptions, HistoryEntry

_LOGGER = logging.getLogger(__name__)

# Retry only on transport / rate-limit errors
RETRY_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.APITimeoutError,
)


class Backend(Protocol):
    async def generate(
        self,
        model: str,
        system_prompt: str,
        turns: Sequence[HistoryEntry],
        options: GenerateOptions,
    ) -> str: ...


def is_gpt5(model: str) -> bool:
    return isinstance(model, str) and model.startswith("gpt-5")


def to_response_input(system_prompt: str, turns: Sequence[HistoryEntry]) -> List[dict]:
    items: List[dict] = [
        {"role": "system", "content": [{"type": "input_text", "text": system_prompt}]}
    ]
    for turn in turns:
        part_type = "output_text" if turn.role == "assistant" else "input_text"
        items.append({"role": turn.role, "content": [{"type": part_type, "text": turn.content}]})
    return items


def extract_response_text(response: Any) -> str:
    if response is None:
        return ""
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    texts: List[str] = []
    for item in getattr(response, "output", None) or []:
        for part in getattr(item, "content", None) or []:
            text = getattr(part, "text", None)
            if isinstance(text, str):
                texts.append(text)
            elif text is not None and getattr(text, "value", None):
                texts.append(text.value)
    return " ".join(texts).strip()


class OpenAIBackend:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: float = 30.0,
        verbosity: str = "high",
        reasoning_effort: str = "high",
        transport_retries: int = 2,
        retry_wait=None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.verbosity = verbosity
        self.reasoning_effort = reasoning_effort
        # Retries after the first request; 0 disables retrying.
        self.transport_retries = max(0, transport_retries)
        self.retry_wait = retry_wait or wait_random_exponential(multiplier=1, max=10)
        if client is not None:
            self._client = client
        elif api_key:
            self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        else:
            self._client = None

    def build_payload(
        self,
        model: str,
        system_prompt: str,
        turns: Sequence[HistoryEntry],
        options: GenerateOptions,
    ) -> dict:
        payload: dict = {
            "model": model,
            "input": to_response_input(system_prompt, turns),
            "max_output_tokens": options.max_tokens,
        }

        text_config: dict = {"format": {"type": "text"}}
        if is_gpt5(model) and not options.compatibility_mode:
            text_config["verbosity"] = "low" if options.short_mode else self.verbosity
            effort = "low" if options.short_mode else self.reasoning_effort
            payload["reasoning"] = {"effort": effort}
        payload["text"] = text_config

        # gpt-5 response models reject temperature unless we are in compatibility mode.
        if not is_gpt5(model) or options.compatibility_mode:
            payload["temperature"] = 0.4 if options.short_mode else 0.6
        return payload

    async def generate(
        self,
        model: str,
        system_prompt: str,
        turns: Sequence[HistoryEntry],
        options: GenerateOptions,
    ) -> str:
        if self._client is None:
            _LOGGER.warning("OPENAI_API_KEY is not set; skipping %s request", model)
            return ""

        payload = self.build_payload(model, system_prompt, turns, options)
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.transport_retries + 1),
            wait=self.retry_wait,
            retry=retry_if_exception_type(RETRY_ERRORS),
            reraise=True,
        ):
            with attempt:
                response = await self._client.responses.create(**payload)

        text = extract_response_text(response)
        if not text:
            _LOGGER.error("OpenAI returned empty content for %s (response id %s)", model, getattr(response, "id", None))
        return text
