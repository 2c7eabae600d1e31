"""
Realtime gateway over FastAPI's TestClient.
"""

import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from simplebot.config import SERVER_RULES_PATH, load_config, set_config
from simplebot.gateway import (
    BOT_MESSAGE_EVENT,
    MESSAGE_EVENT,
    create_app,
    decode_message,
    encode_event,
    origin_allowed,
)
from simplebot.rules import load_rule_table
from simplebot.version import CURRENT_VERSION

GREETING = "Hello! How can I help you today?"
FALLBACK = "I'm not trained for that yet, but I'm learning! 🤖"


def make_client(tmp_path, env=None):
    config = load_config(str(tmp_path / "missing.json"), env=env or {})
    app = create_app(rules=load_rule_table(SERVER_RULES_PATH), config=config)
    return TestClient(app)


@pytest.fixture
def client(tmp_path):
    return make_client(tmp_path)


def ask(ws, text):
    ws.send_text(encode_event(MESSAGE_EVENT, text))
    return ws.receive_json()


# ============================================================================
# WIRE FORMAT
# ============================================================================

def test_encode_event_envelope():
    assert json.loads(encode_event(BOT_MESSAGE_EVENT, "hi 🤖")) == {
        "type": "bot-message",
        "payload": "hi 🤖",
    }


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "not json",
        "[]",
        '{"type": "bot-message", "payload": "x"}',
        '{"type": "message"}',
        '{"type": "message", "payload": 5}',
    ],
)
def test_decode_message_rejects_malformed(raw):
    assert decode_message(raw) is None


def test_decode_message_accepts_text_payload():
    assert decode_message('{"type": "message", "payload": ""}') == ""
    assert decode_message('{"type": "message", "payload": "hello"}') == "hello"


def test_origin_allowed():
    assert origin_allowed("https://any.example", [])
    assert origin_allowed(None, ["https://a.example"])
    assert origin_allowed("https://a.example/", ["https://a.example"])
    assert not origin_allowed("https://evil.example", ["https://a.example"])


# ============================================================================
# SOCKET
# ============================================================================

def test_message_gets_bot_reply(client):
    with client.websocket_connect("/ws") as ws:
        assert ask(ws, "hello") == {"type": BOT_MESSAGE_EVENT, "payload": GREETING}
        assert ask(ws, "xyzzy")["payload"] == FALLBACK
        assert ask(ws, "")["payload"] == "Sorry, I didn't catch that."


def test_replies_arrive_in_send_order(client):
    with client.websocket_connect("/ws") as ws:
        for text in ("hello", "who are you", "xyzzy"):
            ws.send_text(encode_event(MESSAGE_EVENT, text))
        replies = [ws.receive_json()["payload"] for _ in range(3)]
    assert replies == [GREETING, "I'm a simple web chatbot 😊", FALLBACK]


def test_malformed_frames_are_dropped(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_text('{"type": "typing"}')
        ws.send_bytes(b"\x00\x01")
        assert ask(ws, "hi")["payload"] == GREETING


def test_connections_are_isolated(client):
    with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
        first.send_text(encode_event(MESSAGE_EVENT, "hello"))
        second.send_text(encode_event(MESSAGE_EVENT, "who are you"))
        assert second.receive_json()["payload"] == "I'm a simple web chatbot 😊"
        assert first.receive_json()["payload"] == GREETING
        assert len(client.app.state.connections) == 2


def test_connection_is_forgotten_after_close(client):
    with client.websocket_connect("/ws") as ws:
        ask(ws, "hello")
    assert client.get("/api/status").json()["connections"] == 0


def test_disallowed_origin_is_rejected(tmp_path):
    client = make_client(tmp_path, env={"CLIENT_ORIGIN": "https://chat.example"})
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws", headers={"origin": "https://evil.example"}):
            pass
    assert exc.value.code == 1008

    with client.websocket_connect("/ws", headers={"origin": "https://chat.example"}) as ws:
        assert ask(ws, "hello")["payload"] == GREETING


# ============================================================================
# HTTP
# ============================================================================

def test_status_endpoint(client):
    body = client.get("/api/status").json()
    assert body["status"] == "ok"
    assert body["rules"] == 4
    assert body["connections"] == 0
    assert body["origins"] == "*"
    assert len(body["config_hash"]) == 64


def test_cors_reflects_origin_when_unrestricted(client):
    response = client.get("/api/status", headers={"Origin": "https://anywhere.example"})
    assert response.headers["access-control-allow-origin"] == "https://anywhere.example"


def test_cors_allow_list(tmp_path):
    client = make_client(tmp_path, env={"CLIENT_ORIGIN": "https://chat.example"})
    ok = client.get("/api/status", headers={"Origin": "https://chat.example"})
    assert ok.headers["access-control-allow-origin"] == "https://chat.example"
    other = client.get("/api/status", headers={"Origin": "https://evil.example"})
    assert "access-control-allow-origin" not in other.headers


def test_create_app_uses_global_config(tmp_path):
    config = load_config(str(tmp_path / "missing.json"), env={"CLIENT_ORIGIN": "https://chat.example"})
    set_config(config)
    try:
        client = TestClient(create_app())
        body = client.get("/api/status").json()
    finally:
        set_config(None)
    assert body["origins"] == ["https://chat.example"]
    assert body["config_hash"] == config.hash
    assert body["version"] == CURRENT_VERSION
