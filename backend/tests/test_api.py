"""HTTP-level tests for the FastAPI application."""

from __future__ import annotations

import inspect
import json
from typing import Any

from fastapi.testclient import TestClient

from chatrelay.api import health
from chatrelay.core import InvocationErrorKind, ProviderInvocationError
from fakes import ScriptedProvider

MESSAGES = [{"role": "user", "content": "Say hello"}]


def parse_sse(raw: str) -> list[tuple[str | None, dict[str, Any]]]:
    """Split an SSE body into (event, payload) pairs."""
    events = []
    for block in raw.strip().split("\n\n"):
        event = None
        data_lines: list[str] = []
        for line in block.splitlines():
            if line.startswith("event:"):
                event = line.split("event:", 1)[1].strip()
            elif line.startswith("data:"):
                data_lines.append(line.split("data:", 1)[1].strip())
        events.append((event, json.loads("".join(data_lines)) if data_lines else {}))
    return events


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


def test_readiness_reports_checks(client: TestClient) -> None:
    response = client.get("/readyz")

    assert response.status_code == 200
    body = response.json()
    assert body["checks"] == {"database": True, "providers": True}
    assert body["available_providers"] == ["openai"]


def test_readiness_runs_in_threadpool() -> None:
    # the database ping blocks, so the route must not run on the event loop
    assert not inspect.iscoroutinefunction(health.readiness)


def test_list_providers(client: TestClient) -> None:
    body = client.get("/api/providers").json()

    by_id = {provider["id"]: provider for provider in body["providers"]}
    assert body["available"] == ["openai"]
    assert by_id["openai"]["available"] is True
    assert by_id["anthropic"]["available"] is False
    assert by_id["google"]["default_model"] == "gemini-2.5-flash"


def test_provider_models(client: TestClient) -> None:
    response = client.get("/api/providers/deepseek/models")

    assert response.status_code == 200
    assert response.json()["defaultModel"] == "deepseek-chat"

    unknown = client.get("/api/providers/mistral/models")
    assert unknown.status_code == 400
    assert unknown.json()["error"]["code"] == "E4000"


def test_chat_single_shot(client: TestClient) -> None:
    response = client.post(
        "/api/chat", json={"messages": MESSAGES, "provider_id": "openai", "model_id": "gpt-4o"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "Hello, world"
    assert body["provider_name"] == "OpenAI"
    assert body["usage"] == {"input_tokens": 7, "output_tokens": 3}


def test_chat_errors_are_sanitized(client: TestClient) -> None:
    empty = client.post("/api/chat", json={"messages": []})
    missing = client.post("/api/chat", json={"messages": MESSAGES, "provider_id": "anthropic"})

    assert empty.status_code == 400
    assert empty.json()["error"]["code"] == "E5002"
    assert missing.status_code == 503
    assert missing.json()["error"]["code"] == "E4001"
    assert "request_id" in missing.json()["error"]


def test_chat_request_validation(client: TestClient) -> None:
    response = client.post("/api/chat", json={"messages": [{"role": "tool", "content": "x"}]})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "E1001"


def test_chat_stream_sse(client: TestClient) -> None:
    response = client.post("/api/chat/stream", json={"messages": MESSAGES, "provider_id": "openai"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = parse_sse(response.text)
    assert [event for event, _ in events] == ["start", "delta", "delta", "delta", "done"]
    assert events[0][1]["model_id"] == "gpt-4o-mini"
    assert "".join(payload["text"] for event, payload in events if event == "delta") == "Hello, world"
    assert events[-1][1]["finish_reason"] == "stop"


def test_chat_stream_mid_failure_event(client: TestClient, provider: ScriptedProvider) -> None:
    provider.script = ["Hel", ProviderInvocationError(InvocationErrorKind.NETWORK, "connection reset")]

    response = client.post("/api/chat/stream", json={"messages": MESSAGES, "provider_id": "openai"})

    events = parse_sse(response.text)
    assert [event for event, _ in events] == ["start", "delta", "error"]
    assert events[-1][1]["kind"] == "network"
    assert events[-1][1]["code"] == "E4002"


def test_chat_stream_early_failure_is_json_error(client: TestClient, provider: ScriptedProvider) -> None:
    provider.script = [ProviderInvocationError(InvocationErrorKind.UPSTREAM_STATUS, "Provider returned HTTP 500")]

    response = client.post("/api/chat/stream", json={"messages": MESSAGES, "provider_id": "openai"})

    assert response.status_code == 502
    assert response.json()["error"]["details"]["kind"] == "upstream-status"


def test_conversation_lifecycle(client: TestClient) -> None:
    created = client.post("/api/conversations", json={"title": "Trip planning"})
    assert created.status_code == 201
    conversation_id = created.json()["conversation"]["id"]

    saved = []
    for role, content in [("user", "Plan Lisbon"), ("assistant", "Alfama, Belem"), ("user", "Add Sintra")]:
        response = client.post(
            f"/api/conversations/{conversation_id}/messages",
            json={"role": role, "content": content, "provider_id": "openai", "model_id": "gpt-4o"},
        )
        assert response.status_code == 201
        saved.append(response.json()["message"])

    branch = client.post(
        f"/api/conversations/{conversation_id}/branch",
        json={"upto_timestamp": saved[1]["timestamp"], "title": "Lisbon only"},
    )
    assert branch.status_code == 201
    branch_messages = branch.json()["conversation"]["messages"]
    assert [m["content"] for m in branch_messages] == ["Plan Lisbon", "Alfama, Belem"]

    listed = client.get("/api/conversations").json()
    assert listed["total"] == 2

    renamed = client.patch(f"/api/conversations/{conversation_id}", json={"title": "Portugal"})
    assert renamed.status_code == 200
    assert client.get(f"/api/conversations/{conversation_id}").json()["conversation"]["title"] == "Portugal"

    deleted_message = client.delete(f"/api/messages/{saved[0]['id']}")
    assert deleted_message.status_code == 200
    messages = client.get(f"/api/conversations/{conversation_id}/messages").json()["messages"]
    assert len(messages) == 2

    assert client.delete(f"/api/conversations/{conversation_id}").status_code == 200
    missing = client.delete(f"/api/conversations/{conversation_id}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "E5000"


def test_branch_before_first_message(client: TestClient) -> None:
    conversation_id = client.post("/api/conversations", json={"title": "Short"}).json()["conversation"]["id"]
    message = client.post(
        f"/api/conversations/{conversation_id}/messages", json={"role": "user", "content": "hi"}
    ).json()["message"]

    response = client.post(
        f"/api/conversations/{conversation_id}/branch",
        json={"upto_timestamp": "2000-01-01T00:00:00", "title": "Nothing"},
    )

    assert message["id"]
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "E5003"


def test_cleanup_endpoint(client: TestClient) -> None:
    client.post("/api/conversations", json={"title": "Keep"})

    assert client.post("/api/conversations/cleanup").json() == {"deleted": 0}
    assert client.post("/api/conversations/cleanup", json={"before": "2999-01-01T00:00:00"}).json() == {
        "deleted": 1
    }


def test_metrics_endpoint(client: TestClient) -> None:
    client.post("/api/chat", json={"messages": MESSAGES, "provider_id": "openai", "model_id": "gpt-4o"})

    body = client.get("/metrics").json()

    assert body["counters"]["provider_invocations_total"] >= 1
    assert "gauges" in body


def test_unknown_route_uses_error_shape(client: TestClient) -> None:
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "E1002"


def test_api_key_settings_round_trip(client: TestClient) -> None:
    listed = client.get("/api/settings/api-keys").json()
    assert listed["openai"] == {"configured": True, "maskedKey": "***", "source": "environment"}
    assert listed["google"] == {"configured": False}

    stored = client.put("/api/settings/api-keys", json={"provider": "google", "key": "AIza-new-google-key-42"})
    assert stored.json() == {"valid": True, "message": "Google API key configured"}
    assert client.get("/api/settings/api-keys").json()["google"]["maskedKey"] == "AIza-ne***...***y-42"
    assert "google" in client.get("/readyz").json()["available_providers"]

    assert client.delete("/api/settings/api-keys/google").json() == {"success": True}
    assert client.get("/api/settings/api-keys").json()["google"] == {"configured": False}


def test_api_key_settings_reject_unknown_provider(client: TestClient) -> None:
    response = client.put("/api/settings/api-keys", json={"provider": "mistral", "key": "long-enough-key"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "E4000"
    missing_key = client.put("/api/settings/api-keys", json={"provider": "openai"})
    assert missing_key.json()["error"]["code"] == "E1001"
