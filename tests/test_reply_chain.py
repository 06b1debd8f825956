import asyncio

import pytest

from app.services.reply_chain import FALLBACK_REPLY, ReplyChain, build_system_prompt, is_short_request
from app.types.reminder_contract import HistoryEntry

from conftest import FakeBackend

HISTORY = [
    HistoryEntry(role="user", content="apa itu closure?"),
    HistoryEntry(role="assistant", content="Closure adalah ..."),
]


def _chain(backend, **kwargs):
    return ReplyChain(backend, "primary", "fallback", attempt_timeout=1.0, **kwargs)


@pytest.mark.asyncio
async def test_first_attempt_success_short_circuits():
    backend = FakeBackend({"primary": ["Jawaban"]})
    reply = await _chain(backend).get_reply("c1", "lanjut", HISTORY)
    assert reply == "Jawaban"
    assert len(backend.calls) == 1
    assert [t.content for t in backend.calls[0]["turns"]] == ["apa itu closure?", "Closure adalah ...", "lanjut"]


@pytest.mark.asyncio
async def test_falls_back_to_secondary_after_two_empty_primary_attempts():
    backend = FakeBackend({"primary": [""], "fallback": ["OK"]})
    reply = await _chain(backend).get_reply("c1", "hello", HISTORY)

    assert reply == "OK"
    assert [c["model"] for c in backend.calls] == ["primary", "primary", "fallback"]
    # Second attempt drops history; third is the compatibility attempt.
    assert [t.content for t in backend.calls[1]["turns"]] == ["hello"]
    assert [t.content for t in backend.calls[2]["turns"]] == ["hello"]
    assert not backend.calls[1]["options"].compatibility_mode
    assert backend.calls[2]["options"].compatibility_mode
    assert '"fallback"' in backend.calls[2]["system_prompt"]


@pytest.mark.asyncio
async def test_second_attempt_recovers_on_primary():
    backend = FakeBackend({"primary": ["   ", "pendek"]})
    assert await _chain(backend).get_reply("c1", "hi", HISTORY) == "pendek"
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_all_empty_returns_apology():
    backend = FakeBackend()
    assert await _chain(backend).get_reply("c1", "hi") == FALLBACK_REPLY
    assert len(backend.calls) == 3


@pytest.mark.asyncio
async def test_backend_errors_never_escape():
    backend = FakeBackend(error=RuntimeError("boom"))
    assert await _chain(backend).get_reply("c1", "hi") == FALLBACK_REPLY
    assert len(backend.calls) == 3


@pytest.mark.asyncio
async def test_slow_attempts_time_out():
    class SlowBackend:
        calls = 0

        async def generate(self, model, system_prompt, turns, options):
            SlowBackend.calls += 1
            await asyncio.sleep(5)
            return "too late"

    chain = ReplyChain(SlowBackend(), "primary", "fallback", attempt_timeout=0.01)
    assert await chain.get_reply("c1", "hi") == FALLBACK_REPLY
    assert SlowBackend.calls == 3


@pytest.mark.asyncio
async def test_short_mode_shrinks_budget():
    backend = FakeBackend({"primary": ["ok"]})
    await _chain(backend, max_tokens=1200).get_reply("c1", "jelaskan singkat saja")
    options = backend.calls[0]["options"]
    assert options.short_mode
    assert options.max_tokens == 400


def test_short_budget_has_floor():
    chain = _chain(FakeBackend(), max_tokens=300)
    assert chain.token_budget(True) == 200
    assert chain.token_budget(False) == 300


def test_system_prompt_names_model():
    assert '"gpt-4o-mini"' in build_system_prompt("gpt-4o-mini")
    assert is_short_request("TL;DR please")
    assert not is_short_request("explain in depth")


@pytest.mark.parametrize("text", ["what is the shortest path algorithm?", "prepare briefing notes", "shortcut keys?"])
def test_words_containing_markers_keep_full_budget(text):
    assert not is_short_request(text)


@pytest.mark.asyncio
async def test_shortest_path_question_gets_generous_budget():
    backend = FakeBackend({"primary": ["ok"]})
    await _chain(backend, max_tokens=1000).get_reply("c1", "what is the shortest path algorithm?")
    options = backend.calls[0]["options"]
    assert not options.short_mode
    assert options.max_tokens == 1000


def test_marker_words_enable_short_mode():
    assert is_short_request("jawab singkat ya")
    assert is_short_request("keep it short.")
    assert is_short_request("Brief answer please")
