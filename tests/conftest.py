"""Pytest configuration and fixtures."""

import json

import pytest

from tradecopilot.config import CopilotConfig
from tradecopilot.llm.client import CompletionProvider


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Local mode only: no Supabase, no real API key, in-memory database."""
    for var in ("ENVIRONMENT", "FORCE_SUPABASE", "SUPABASE_URL", "SUPABASE_ANON_KEY", "LOCAL_USER_ID"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    yield


class FakeProvider(CompletionProvider):
    """
    Completion provider that replays queued replies.

    Each queued item is either the completion text or an exception to raise.
    Every call is recorded in `calls`.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, messages, model, max_tokens, temperature, response_format=None):
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "response_format": response_format,
            }
        )
        reply = self.replies.pop(0) if self.replies else json.dumps({"narrative": "ok", "memory_hint": None})
        if isinstance(reply, Exception):
            raise reply
        return reply


class NoSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def copilot_config():
    return CopilotConfig(api_key="sk-test", base_url="https://api.example.test/v1")


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def no_sleep():
    return NoSleep()


@pytest.fixture
def local_store():
    """Fresh in-memory local store."""
    from tradecopilot.journal.store import LocalStore

    return LocalStore("sqlite://")


@pytest.fixture
def conversation(local_store):
    """A conversation owned by user-1."""
    return local_store.create_conversation("user-1", "Chat 2024-01-15")


@pytest.fixture
def make_provider():
    """Factory for FakeProvider with queued replies."""
    return FakeProvider
