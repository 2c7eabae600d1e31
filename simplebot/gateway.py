"""
REALTIME TRANSPORT GATEWAY

WebSocket front for the server-side Reply Resolver profile.

Protocol (one JSON envelope per text frame):
    client -> server  {"type": "message",     "payload": "<text>"}
    server -> client  {"type": "bot-message", "payload": "<reply>"}

Rules:
- Replies go to the sending connection only; no broadcast
- Each connection is served by its own receive loop, so its events are
  handled and answered in arrival order
- No session state: every message is resolved on its own
- Malformed frames are dropped; the connection stays open
- No auth, no rate limit, no persistence

Origin policy:
- server.origins empty -> allow all, reflect the request Origin (HTTP CORS)
- otherwise only listed origins may open a socket (others get 403)
"""

import json
import logging
import uuid
from typing import Optional, Set

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from simplebot.config import Config, get_config
from simplebot.instrumentation import log_event
from simplebot.resolver import resolve
from simplebot.rules import RuleTable, load_rule_table
from simplebot.version import CURRENT_VERSION

logger = logging.getLogger("SIMPLEBOT.Gateway")

MESSAGE_EVENT = "message"
BOT_MESSAGE_EVENT = "bot-message"


# ============================================================================
# WIRE FORMAT
# ============================================================================

def encode_event(event: str, payload: str) -> str:
    return json.dumps({"type": event, "payload": payload}, ensure_ascii=False)


def decode_message(raw: Optional[str]) -> Optional[str]:
    """Return the text payload of a client `message` event, or None if malformed."""
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict) or data.get("type") != MESSAGE_EVENT:
        return None
    payload = data.get("payload")
    if not isinstance(payload, str):
        return None
    return payload


def origin_allowed(origin: Optional[str], origins) -> bool:
    """Empty allow-list admits everyone. Requests without Origin (non-browser) are admitted."""
    if not origins or origin is None:
        return True
    return origin.rstrip("/") in origins


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(rules: Optional[RuleTable] = None, config: Optional[Config] = None) -> FastAPI:
    config = config or get_config()
    if rules is None:
        rules = load_rule_table(config.get("server.rules_path"))
    origins = [] if config.allow_all_origins else list(config.get("server.origins"))

    app = FastAPI(title="SimpleBot Gateway", version=CURRENT_VERSION)
    if origins:
        app.add_middleware(CORSMiddleware, allow_origins=origins, allow_methods=["GET", "POST"])
    else:
        # Regex match makes Starlette echo the caller's Origin instead of "*"
        app.add_middleware(CORSMiddleware, allow_origin_regex=".*", allow_methods=["GET", "POST"])

    connections: Set[str] = set()
    app.state.rules = rules
    app.state.connections = connections

    @app.get("/api/status")
    async def get_status():
        return {
            "status": "ok",
            "service": "SimpleBot Gateway",
            "version": CURRENT_VERSION,
            "rules": len(rules),
            "connections": len(connections),
            "origins": origins or "*",
            "config_hash": config.hash,
        }

    @app.websocket("/ws")
    async def chat_socket(websocket: WebSocket):
        origin = websocket.headers.get("origin")
        if not origin_allowed(origin, origins):
            logger.warning(f"[WS] Rejected origin {origin}")
            await websocket.close(code=1008)
            return

        await websocket.accept()
        connection_id = uuid.uuid4().hex[:8]
        connections.add(connection_id)
        log_event("CONNECT", stage="gateway", connection_id=connection_id)
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                text = decode_message(frame.get("text"))
                if text is None:
                    logger.debug(f"[WS] {connection_id}: dropping malformed frame")
                    continue
                reply = resolve(text, rules)
                await websocket.send_text(encode_event(BOT_MESSAGE_EVENT, reply))
                log_event(f"REPLY len={len(reply)}", stage="gateway", connection_id=connection_id)
        finally:
            connections.discard(connection_id)
            log_event("DISCONNECT", stage="gateway", connection_id=connection_id)

    return app
