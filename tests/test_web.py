"""Tests for the HTTP API (local mode, fake completion provider)."""

import json

import pytest
from fastapi.testclient import TestClient

from tradecopilot.coach.orchestrator import AnalysisOrchestrator
from tradecopilot.errors import UpstreamProviderError
from tradecopilot.llm.normalizer import ERROR_APOLOGY
from tradecopilot.web.server import create_app

LOCAL_USER = "local-user"


@pytest.fixture
def provider(make_provider):
    return make_provider()


@pytest.fixture
def client(copilot_config, local_store, provider):
    orchestrator = AnalysisOrchestrator(copilot_config, provider, store=local_store)
    app = create_app(store=local_store, orchestrator=orchestrator)
    return TestClient(app)


class TestAnalyze:
    def test_analyze_text(self, client, provider):
        provider.replies.append(json.dumps({"narrative": "Looks strong.", "memory_hint": "Likes momentum"}))

        response = client.post("/api/analyze", json={"contextText": "NQ breaking out", "requestAnalysis": True})

        assert response.status_code == 200
        body = response.json()
        assert body["feedback"]["narrative"].startswith("Looks strong.")
        assert body["feedback"]["memory_hint"] == "Likes momentum"
        assert "latency_ms" in body

    def test_analyze_requires_input(self, client, provider):
        response = client.post("/api/analyze", json={})

        assert response.status_code == 400
        assert response.json()["feedback"]["narrative"].startswith(ERROR_APOLOGY)
        assert provider.calls == []

    def test_analyze_malformed_body(self, client):
        response = client.post(
            "/api/analyze", content="not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]
        assert "feedback" in response.json()

    def test_analyze_upstream_failure(self, client, provider):
        provider.replies.append(UpstreamProviderError("Chat completion failed", 500, "oops"))

        response = client.post("/api/analyze", json={"contextText": "hi"})

        assert response.status_code == 502
        assert response.json()["error"]
        assert response.json()["feedback"]["narrative"].startswith(ERROR_APOLOGY)

    def test_analyze_foreign_conversation(self, client, local_store, provider):
        other = local_store.create_conversation("someone-else", "Private")

        response = client.post("/api/analyze", json={"contextText": "hi", "conversationId": other["id"]})

        assert response.status_code == 404
        assert provider.calls == []

    def test_owner_lookup_failure_keeps_error_shape(self, client, local_store, provider):
        def broken(*args):
            raise RuntimeError("relation \"conversations\" is unavailable")

        local_store.get_conversation_owner = broken

        response = client.post(
            "/api/analyze", json={"contextText": "hi", "conversationId": "c1", "useMemory": True}
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error"]
        assert body["feedback"]["narrative"].startswith(ERROR_APOLOGY)
        assert provider.calls == []

    def test_validation_runs_before_ownership(self, client, local_store, provider):
        other = local_store.create_conversation("someone-else", "Private")

        response = client.post("/api/analyze", json={"conversationId": other["id"]})

        assert response.status_code == 400
        assert "feedback" in response.json()
        assert provider.calls == []

    def test_preflight(self, client):
        response = client.options(
            "/api/analyze",
            headers={
                "Origin": "https://app.example.test",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type, x-client-info, apikey",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] in ("*", "https://app.example.test")


class TestConversations:
    def test_chat_round_trip(self, client, provider, local_store):
        provider.replies.append(json.dumps({"narrative": "Wait for a pullback.", "memory_hint": "Impatient entries"}))

        created = client.post("/api/conversations", json={"title": "ES morning"})
        assert created.status_code == 201
        cid = created.json()["data"]["id"]

        sent = client.post(f"/api/conversations/{cid}/messages", json={"text": "Buy now?"})

        assert sent.status_code == 200
        body = sent.json()
        assert body["feedback"]["narrative"].startswith("Wait for a pullback.")
        assert body["memory_saved"] is True
        assert body["user_message"]["text"] == "Buy now?"

        messages = client.get(f"/api/conversations/{cid}/messages").json()["data"]
        assert [m["role"] for m in messages] == ["user", "ai"]
        assert local_store.list_recent_memories(LOCAL_USER, 5) == ["Impatient entries"]

    def test_list_and_delete(self, client):
        cid = client.post("/api/conversations").json()["data"]["id"]

        listed = client.get("/api/conversations").json()["data"]
        assert [c["id"] for c in listed] == [cid]
        assert listed[0]["title"].startswith("Chat ")

        assert client.delete(f"/api/conversations/{cid}").status_code == 200
        assert client.delete(f"/api/conversations/{cid}").status_code == 404

    def test_foreign_conversation_messages(self, client, local_store):
        other = local_store.create_conversation("someone-else", "Private")

        assert client.get(f"/api/conversations/{other['id']}/messages").status_code == 404
        assert client.post(f"/api/conversations/{other['id']}/messages", json={"text": "hi"}).status_code == 404


class TestSettingsAndMemories:
    def test_settings_defaults_then_update(self, client):
        defaults = client.get("/api/settings").json()["data"]
        assert defaults["trading_experience"] == "Intermediate"

        response = client.put("/api/settings", json={"trading_style": "Swing Trading", "remember_patterns": False})

        assert response.status_code == 200
        current = client.get("/api/settings").json()["data"]
        assert current["trading_style"] == "Swing Trading"
        assert current["remember_patterns"] is False

    def test_memories_crud(self, client):
        created = client.post("/api/memories", json={"content": "Trades only the open", "kind": "preference"})
        assert created.status_code == 201
        memory_id = created.json()["data"]["id"]

        listed = client.get("/api/memories").json()["data"]
        assert [m["content"] for m in listed] == ["Trades only the open"]

        assert client.delete(f"/api/memories/{memory_id}").status_code == 200
        assert client.delete(f"/api/memories/{memory_id}").status_code == 404

    def test_empty_memory_rejected(self, client):
        assert client.post("/api/memories", json={"content": ""}).status_code == 422


class TestTrades:
    def test_trade_lifecycle(self, client):
        created = client.post(
            "/api/trades",
            json={
                "instrument": "ES",
                "direction": "long",
                "timeframes": ["5m"],
                "narrative": "Bull flag above VWAP\nDetails follow",
            },
        )
        assert created.status_code == 201
        trade = created.json()["data"]
        assert trade["notes"] == "Bull flag above VWAP"
        assert trade["outcome"] == "unknown"

        updated = client.patch(f"/api/trades/{trade['id']}", json={"outcome": "win", "rr_numeric": 2.0})
        assert updated.json()["data"]["outcome"] == "win"

        stats = client.get("/api/trades/stats").json()["data"]
        assert stats["total"] == 1
        assert stats["win_rate"] == 100.0
        assert stats["avg_rr"] == 2.0

        assert [t["id"] for t in client.get("/api/trades?outcome=win").json()["data"]] == [trade["id"]]
        assert client.get("/api/trades?outcome=loss").json()["data"] == []

        assert client.delete(f"/api/trades/{trade['id']}").status_code == 200
        assert client.get(f"/api/trades/{trade['id']}").status_code == 404

    def test_invalid_direction_rejected(self, client):
        assert client.post("/api/trades", json={"instrument": "ES", "direction": "sideways"}).status_code == 422

    def test_empty_update_rejected(self, client):
        trade = client.post("/api/trades", json={"instrument": "ES", "direction": "short"}).json()["data"]

        assert client.patch(f"/api/trades/{trade['id']}", json={}).status_code == 400


def test_health_and_status(client):
    assert client.get("/health").json()["data"]["status"] == "healthy"

    status = client.get("/api/status").json()["data"]
    assert status["vision_model"] == "gpt-4o"
    assert status["supabase_enabled"] is False


class TestTradeLinks:
    """Trades can only reference the caller's own conversations and messages."""

    def test_links_to_own_message(self, client, local_store):
        conversation = local_store.create_conversation(LOCAL_USER, "Mine")
        message = local_store.add_message(conversation["id"], "ai", "Bull flag")

        response = client.post(
            "/api/trades", json={"instrument": "ES", "direction": "long", "message_id": message["id"]}
        )

        assert response.status_code == 201
        assert response.json()["data"]["conversation_id"] == conversation["id"]

    def test_foreign_conversation_rejected(self, client, local_store):
        other = local_store.create_conversation("someone-else", "Private")

        response = client.post(
            "/api/trades", json={"instrument": "ES", "direction": "long", "conversation_id": other["id"]}
        )

        assert response.status_code == 404
        assert local_store.list_trades(LOCAL_USER) == []

    def test_foreign_message_rejected(self, client, local_store):
        other = local_store.create_conversation("someone-else", "Private")
        message = local_store.add_message(other["id"], "ai", "Their analysis")

        response = client.post(
            "/api/trades", json={"instrument": "ES", "direction": "long", "message_id": message["id"]}
        )

        assert response.status_code == 404

    def test_message_from_another_conversation_rejected(self, client, local_store):
        mine = local_store.create_conversation(LOCAL_USER, "Mine")
        other = local_store.create_conversation(LOCAL_USER, "Also mine")
        message = local_store.add_message(other["id"], "ai", "Elsewhere")

        response = client.post(
            "/api/trades",
            json={
                "instrument": "ES",
                "direction": "long",
                "conversation_id": mine["id"],
                "message_id": message["id"],
            },
        )

        assert response.status_code == 404

    def test_unknown_message_rejected(self, client):
        response = client.post(
            "/api/trades", json={"instrument": "ES", "direction": "long", "message_id": "missing"}
        )

        assert response.status_code == 404
