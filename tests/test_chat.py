"""Tests for the conversation chat flow."""

import asyncio
import json
from datetime import date

import pytest

from tradecopilot.coach.chat import ChatService, default_conversation_title
from tradecopilot.coach.orchestrator import AnalysisOrchestrator
from tradecopilot.errors import NotFoundError, UpstreamProviderError
from tradecopilot.llm.normalizer import NO_INSIGHT_HINT


@pytest.fixture
def make_chat(copilot_config, local_store, no_sleep):
    def _make(provider, max_attempts=3):
        orchestrator = AnalysisOrchestrator(copilot_config, provider, store=local_store)
        return ChatService(orchestrator, local_store, max_attempts=max_attempts, sleep=no_sleep)

    return _make


def test_default_title():
    assert default_conversation_title(date(2024, 1, 15)) == "Chat 2024-01-15"


def test_start_conversation_uses_default_title(make_chat, fake_provider, local_store):
    chat = make_chat(fake_provider)

    conversation = asyncio.run(chat.start_conversation("user-1"))

    assert conversation["title"].startswith("Chat ")
    assert local_store.get_conversation_owner(conversation["id"]) == "user-1"


def test_turn_persists_messages_and_memory(make_chat, make_provider, local_store, conversation):
    provider = make_provider(json.dumps({"narrative": "Wait for the retest.", "memory_hint": "Chases breakouts"}))
    chat = make_chat(provider)

    reply = asyncio.run(chat.send_message("user-1", conversation["id"], text="Should I buy here?"))

    assert reply.outcome.ok
    assert reply.attempts == 1
    messages = local_store.list_messages(conversation["id"])
    assert [m["role"] for m in messages] == ["user", "ai"]
    assert messages[0]["text"] == "Should I buy here?"
    assert messages[1]["text"].startswith("Wait for the retest.")
    assert local_store.list_recent_memories("user-1", 5) == ["Chases breakouts"]
    assert reply.memory["kind"] == "note"


@pytest.mark.parametrize("hint", [None, "null"])
def test_no_memory_saved_without_insight(make_chat, make_provider, local_store, conversation, hint):
    provider = make_provider(json.dumps({"narrative": "Hold.", "memory_hint": hint}))
    chat = make_chat(provider)

    reply = asyncio.run(chat.send_message("user-1", conversation["id"], text="hi"))

    assert reply.memory is None
    assert local_store.list_memories("user-1") == []


def test_sentinel_hint_is_not_saved(make_chat, make_provider, local_store, conversation):
    provider = make_provider(json.dumps({"narrative": "Hold."}))
    chat = make_chat(provider)

    reply = asyncio.run(chat.send_message("user-1", conversation["id"], text="hi"))

    assert reply.outcome.result.memory_hint == NO_INSIGHT_HINT
    assert local_store.list_memories("user-1") == []


def test_image_message_is_saved_with_url(make_chat, fake_provider, local_store, conversation):
    chat = make_chat(fake_provider)

    asyncio.run(chat.send_message("user-1", conversation["id"], image_url="https://x/chart.png"))

    user_message = local_store.list_messages(conversation["id"])[0]
    assert user_message["text"] is None
    assert user_message["image_url"] == "https://x/chart.png"
    assert fake_provider.calls[0]["model"] == "gpt-4o"


def test_server_errors_are_retried(make_chat, make_provider, local_store, conversation, no_sleep):
    provider = make_provider(
        UpstreamProviderError("Chat completion failed", 500),
        json.dumps({"narrative": "Recovered.", "memory_hint": None}),
    )
    chat = make_chat(provider)

    reply = asyncio.run(chat.send_message("user-1", conversation["id"], text="hi"))

    assert reply.outcome.ok
    assert reply.attempts == 2
    assert no_sleep.delays == [1.0]
    assert len(local_store.list_messages(conversation["id"])) == 2


def test_gives_up_after_max_attempts(make_chat, make_provider, local_store, conversation, no_sleep):
    provider = make_provider(*[UpstreamProviderError("Chat completion failed", 500) for _ in range(3)])
    chat = make_chat(provider)

    reply = asyncio.run(chat.send_message("user-1", conversation["id"], text="hi"))

    assert reply.outcome.status_code == 502
    assert reply.attempts == 3
    assert no_sleep.delays == [1.0, 2.0]
    # Only the user's message is kept
    assert [m["role"] for m in local_store.list_messages(conversation["id"])] == ["user"]


def test_empty_turn_is_not_saved_or_retried(make_chat, fake_provider, local_store, conversation):
    chat = make_chat(fake_provider)

    reply = asyncio.run(chat.send_message("user-1", conversation["id"], text="   "))

    assert reply.outcome.status_code == 400
    assert reply.attempts == 1
    assert fake_provider.calls == []
    assert local_store.list_messages(conversation["id"]) == []


def test_other_users_conversation_is_not_found(make_chat, fake_provider, conversation):
    chat = make_chat(fake_provider)

    with pytest.raises(NotFoundError):
        asyncio.run(chat.send_message("user-2", conversation["id"], text="hi"))

    assert fake_provider.calls == []


def test_previous_turns_are_replayed(make_chat, make_provider, conversation):
    provider = make_provider(
        json.dumps({"narrative": "First reply", "memory_hint": None}),
        json.dumps({"narrative": "Second reply", "memory_hint": None}),
    )
    chat = make_chat(provider)

    asyncio.run(chat.send_message("user-1", conversation["id"], text="First"))
    asyncio.run(chat.send_message("user-1", conversation["id"], text="Second"))

    second_call = provider.calls[1]["messages"]
    assert second_call[1] == {"role": "user", "content": "First"}
    assert second_call[2]["role"] == "assistant"
    assert second_call[2]["content"].startswith("First reply")
    assert second_call[-1] == {"role": "user", "content": "Second"}
