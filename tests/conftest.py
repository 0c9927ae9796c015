"""Global test configuration and fixtures for valkey-wire.

This module provides common fixtures and pytest configuration used across
all test modules. Unit tests talk to ScriptedServer, an in-process asyncio
server that records every command it receives and answers with scripted
replies. Integration tests need a real server and are skipped unless
VALKEY_HOSTNAME is set.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable

import pytest

from valkeywire import (
    ClientConfiguration,
    HostnameAddress,
    ValkeyConnection,
)
from valkeywire.protocol.decoder import FrameDecoder

# A handler receives one command (list of byte strings) and returns the raw
# reply bytes, or None to leave the command unanswered for now.
Handler = Callable[[list[bytes]], "bytes | None"]

DEFAULT_REPLIES: dict[bytes, bytes] = {
    b"PING": b"+PONG\r\n",
    b"HELLO": b"%2\r\n+server\r\n+valkey\r\n+proto\r\n:3\r\n",
    b"CLIENT": b"+OK\r\n",
    b"SELECT": b"+OK\r\n",
    b"DEL": b":1\r\n",
}


# =============================================================================
# SCRIPTED SERVER
# =============================================================================


class ScriptedServer:
    """In-process RESP server driven by the test.

    Attributes:
        received: Every command received, in arrival order, across connections
        handler: Reply function; defaults to DEFAULT_REPLIES, then "+OK"
    """

    def __init__(self) -> None:
        self.received: list[list[bytes]] = []
        self.handler: Handler = self.default_handler
        self.connection_count = 0
        self._writers: list[asyncio.StreamWriter] = []
        self._server: asyncio.base_events.Server | None = None
        self._command_arrived = asyncio.Condition()

    @staticmethod
    def default_handler(command: list[bytes]) -> bytes | None:
        return DEFAULT_REPLIES.get(command[0].upper(), b"+OK\r\n")

    @property
    def address(self) -> HostnameAddress:
        assert self._server is not None
        port = self._server.sockets[0].getsockname()[1]
        return HostnameAddress(host="127.0.0.1", port=port)

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)

    async def close(self) -> None:
        await self.drop_connections()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connection_count += 1
        self._writers.append(writer)
        decoder = FrameDecoder()
        try:
            while data := await reader.read(65536):
                decoder.feed(data)
                for value in decoder:
                    command = [element.value for element in value]
                    self.received.append(command)
                    async with self._command_arrived:
                        self._command_arrived.notify_all()
                    reply = self.handler(command)
                    if reply is not None:
                        writer.write(reply)
                await writer.drain()
        except (ConnectionError, asyncio.CancelledError):
            pass
        finally:
            writer.close()

    async def wait_for_commands(self, count: int, timeout: float = 2.0) -> None:
        """Wait until at least count commands have been received."""
        async with asyncio.timeout(timeout):
            async with self._command_arrived:
                await self._command_arrived.wait_for(lambda: len(self.received) >= count)

    async def send_raw(self, data: bytes) -> None:
        """Write raw bytes to every open connection (late replies, pushes, garbage)."""
        for writer in self._writers:
            if not writer.is_closing():
                writer.write(data)
                await writer.drain()

    async def drop_connections(self) -> None:
        """Close every open connection from the server side."""
        for writer in self._writers:
            writer.close()
        self._writers.clear()


@pytest.fixture
async def scripted_server():
    """A started ScriptedServer, closed after the test."""
    server = ScriptedServer()
    await server.start()
    yield server
    await server.close()


@pytest.fixture
async def make_server():
    """Factory for additional ScriptedServers (all closed after the test)."""
    servers: list[ScriptedServer] = []

    async def factory() -> ScriptedServer:
        server = ScriptedServer()
        await server.start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        await server.close()


@pytest.fixture
def resp2_config() -> ClientConfiguration:
    """Configuration without the HELLO handshake and without reconnection."""
    return ClientConfiguration(protocol=2, connect_timeout=1.0, reconnect=False)


@pytest.fixture
async def connection(scripted_server: ScriptedServer, resp2_config: ClientConfiguration):
    """A connection to scripted_server with its read loop running."""
    conn = await ValkeyConnection.connect(scripted_server.address, resp2_config)
    loop_task = asyncio.create_task(conn.run())
    yield conn
    loop_task.cancel()
    await asyncio.gather(loop_task, return_exceptions=True)


# =============================================================================
# ENVIRONMENT DETECTION
# =============================================================================


@pytest.fixture
def valkey_hostname() -> str:
    """Hostname of a real server for integration tests.

    Reads from VALKEY_HOSTNAME; tests are skipped when it is not set.
    """
    hostname = os.environ.get("VALKEY_HOSTNAME", "")
    if not hostname:
        pytest.skip("Set VALKEY_HOSTNAME to run integration tests")
    return hostname
