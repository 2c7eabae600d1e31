"""
GatewayClient against a throwaway websockets server speaking the gateway
protocol.
"""

import asyncio

import pytest
import websockets

from simplebot.gateway import BOT_MESSAGE_EVENT, decode_message, encode_event
from simplebot.remote import GatewayClient


async def echo_handler(connection):
    async for raw in connection:
        text = decode_message(raw)
        if text is None:
            continue
        # Noise the client must skip
        await connection.send("not json")
        await connection.send(encode_event("typing", ""))
        await connection.send(encode_event(BOT_MESSAGE_EVENT, f"echo: {text}"))


@pytest.fixture
async def server_url():
    async with websockets.serve(echo_handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


async def test_ask_returns_bot_reply(server_url):
    async with GatewayClient(server_url) as client:
        assert await client.ask("hello") == "echo: hello"
        assert await client.ask("again") == "echo: again"


async def test_connect_with_origin(server_url):
    async with GatewayClient(server_url, origin="https://chat.example") as client:
        assert await client.ask("hi") == "echo: hi"


async def test_receive_times_out(server_url):
    async with GatewayClient(server_url, timeout=0.2) as client:
        with pytest.raises(asyncio.TimeoutError):
            await client.receive()


async def test_send_requires_connection():
    client = GatewayClient("ws://127.0.0.1:1")
    with pytest.raises(RuntimeError):
        await client.send("hello")
    with pytest.raises(RuntimeError):
        await client.receive()
    await client.close()
