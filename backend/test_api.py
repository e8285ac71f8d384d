"""HTTP channel: POST /messages and /health, against a test runtime."""
import json

import pytest
from fastapi.testclient import TestClient

from chatshop.agent.runtime import build_runtime
from chatshop.api.deps import get_runtime_dep
from chatshop.main import app

from conftest import RecordingSink, ScriptedClient


@pytest.fixture
def client_for(session_factory):
    """Returns a factory: scripted oracle responses -> TestClient (lifespan not run)."""

    def _client(responses):
        runtime = build_runtime(
            session_factory,
            oracle_client=ScriptedClient(responses),
            sink=RecordingSink(),
            session_backend="database",
        )
        app.dependency_overrides[get_runtime_dep] = lambda: runtime
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


def test_health(client_for):
    response = client_for([]).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_message_round_trip(client_for):
    client = client_for([json.dumps({"message": "Hi Ada! How can I help?", "action": "general"})])

    response = client.post("/messages", json={"senderId": "web-1", "text": "hello", "messageId": "w-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["replies"] == ["Hi Ada! How can I help?"]
    assert body["action"] == "general"
    assert body["stage"] == "none"
    assert body["duplicate"] is False

    again = client.post("/messages", json={"senderId": "web-1", "text": "hello", "messageId": "w-1"})
    assert again.json()["duplicate"] is True


def test_order_over_http_with_persisted_sessions(client_for, add_product, repo):
    add_product(stock=5)
    order = json.dumps({"message": "Sure!", "action": "order", "targetProduct": "PRD-100", "quantity": 2})
    client = client_for([order])

    stages = []
    for text in ("I want PRD-100, 2 units", "15 Allen Avenue, Abeokuta, Ogun", "confirm cod"):
        response = client.post("/messages", json={"senderId": "web-2", "text": text})
        assert response.status_code == 200
        stages.append(response.json())

    assert [s["stage"] for s in stages] == ["collecting_address", "awaiting_confirmation", "none"]
    assert stages[-1]["order_id"]
    assert repo.find_product("PRD-100").stock == 3


def test_blank_and_malformed_messages_rejected(client_for):
    client = client_for([])

    assert client.post("/messages", json={"senderId": "web-1", "text": "   "}).status_code == 400
    assert client.post("/messages", json={"text": "hi"}).status_code == 422
    assert client.post("/messages", json={"senderId": "", "text": "hi"}).status_code == 422
