"""
Networked reply profile: a client for the realtime gateway.

Sends one `message` event and reads the `bot-message` reply on the same
connection. Replies are matched by connection and order only (no request
ids). No reconnection: a dropped connection surfaces as ConnectionClosed.
"""

import asyncio
import json
import logging
from typing import Optional

import websockets

from simplebot.gateway import BOT_MESSAGE_EVENT, MESSAGE_EVENT, encode_event

logger = logging.getLogger("SIMPLEBOT.Remote")


class GatewayClient:
    def __init__(self, url: str, origin: Optional[str] = None, timeout: float = 10.0):
        self.url = url
        self.origin = origin
        self.timeout = timeout
        self._ws = None

    async def connect(self) -> "GatewayClient":
        kwargs = {}
        if self.origin:
            kwargs["origin"] = self.origin
        self._ws = await websockets.connect(self.url, **kwargs)
        logger.info(f"[Remote] Connected to {self.url}")
        return self

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def __aenter__(self) -> "GatewayClient":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def send(self, text: str) -> None:
        if self._ws is None:
            raise RuntimeError("GatewayClient is not connected")
        await self._ws.send(encode_event(MESSAGE_EVENT, text))

    async def receive(self) -> str:
        """Next bot reply on this connection; other frames are skipped."""
        if self._ws is None:
            raise RuntimeError("GatewayClient is not connected")
        while True:
            raw = await asyncio.wait_for(self._ws.recv(), timeout=self.timeout)
            try:
                data = json.loads(raw)
            except ValueError:
                logger.debug("[Remote] Skipping non-JSON frame")
                continue
            if isinstance(data, dict) and data.get("type") == BOT_MESSAGE_EVENT:
                return str(data.get("payload", ""))

    async def ask(self, text: str) -> str:
        await self.send(text)
        return await self.receive()
