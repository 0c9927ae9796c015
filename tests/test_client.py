"""Tests for ValkeyClient: handshake, reconnection and sentinel resolution."""

from __future__ import annotations

import asyncio
import time

import pytest

from valkeywire import (
    BulkString,
    ClientConfiguration,
    Push,
    SentinelAddress,
    UnixSocketAddress,
    ValkeyClient,
    ValkeyConnectionError,
)


def fast_config(**overrides) -> ClientConfiguration:
    params = {
        "connect_timeout": 1.0,
        "reconnect_backoff_base": 0.01,
        "reconnect_backoff_max": 0.05,
    }
    params.update(overrides)
    return ClientConfiguration(**params)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


async def stop(client: ValkeyClient, run_task: asyncio.Task) -> None:
    await client.close()
    await asyncio.wait_for(asyncio.gather(run_task, return_exceptions=True), timeout=2.0)


class TestClientLifecycle:
    """Test run(), close() and the handshake."""

    @pytest.mark.asyncio
    async def test_run_and_close(self, scripted_server):
        """Test that a client connects, sends HELLO 3 and stops on close()."""
        client = ValkeyClient(scripted_server.address, fast_config(), name="cache")
        run_task = asyncio.create_task(client.run())

        assert await client.ping() == "PONG"
        assert client.is_connected
        assert scripted_server.received == [[b"HELLO", b"3"], [b"PING"]]

        await client.close()
        await asyncio.wait_for(run_task, timeout=2.0)
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_handshake_commands(self, scripted_server):
        """Test that client name and database are applied on connect."""
        config = fast_config(client_name="worker-1", database=2)
        client = ValkeyClient(scripted_server.address, config)
        run_task = asyncio.create_task(client.run())
        try:
            await client.ping()
            assert scripted_server.received[:3] == [
                [b"HELLO", b"3"],
                [b"CLIENT", b"SETNAME", b"worker-1"],
                [b"SELECT", b"2"],
            ]
        finally:
            await stop(client, run_task)

    @pytest.mark.asyncio
    async def test_resp2_skips_hello(self, scripted_server):
        """Test that protocol 2 connects without HELLO."""
        client = ValkeyClient(scripted_server.address, fast_config(protocol=2))
        run_task = asyncio.create_task(client.run())
        try:
            await client.ping()
            assert scripted_server.received == [[b"PING"]]
        finally:
            await stop(client, run_task)

    @pytest.mark.asyncio
    async def test_handshake_failure(self, scripted_server):
        """Test that a rejected handshake fails the connection."""
        scripted_server.handler = lambda command: b"-NOAUTH Authentication required.\r\n"
        client = ValkeyClient(scripted_server.address, fast_config(reconnect=False))
        with pytest.raises(ValkeyConnectionError, match="Handshake"):
            await asyncio.wait_for(client.run(), timeout=2.0)

    @pytest.mark.asyncio
    async def test_run_twice(self, scripted_server):
        """Test that run() cannot be active twice."""
        client = ValkeyClient(scripted_server.address, fast_config())
        run_task = asyncio.create_task(client.run())
        try:
            await client.ping()
            with pytest.raises(RuntimeError, match="already running"):
                await client.run()
        finally:
            await stop(client, run_task)

    @pytest.mark.asyncio
    async def test_cancel_run(self, scripted_server):
        """Test that cancelling run() fails outstanding commands."""
        scripted_server.handler = lambda command: None if command[0] == b"GET" else (
            scripted_server.default_handler(command)
        )
        client = ValkeyClient(scripted_server.address, fast_config())
        run_task = asyncio.create_task(client.run())
        await client.ping()

        pending = asyncio.create_task(client.get("k"))
        await scripted_server.wait_for_commands(3)
        run_task.cancel()

        with pytest.raises(ValkeyConnectionError):
            await pending
        with pytest.raises(asyncio.CancelledError):
            await run_task

    @pytest.mark.asyncio
    async def test_push_messages(self, scripted_server):
        """Test that pushes are available through next_push()."""
        client = ValkeyClient(scripted_server.address, fast_config())
        run_task = asyncio.create_task(client.run())
        try:
            await client.ping()
            await scripted_server.send_raw(b">2\r\n$10\r\ninvalidate\r\n$1\r\nk\r\n")
            push = await asyncio.wait_for(client.next_push(), timeout=2.0)
            assert push == Push((BulkString(b"invalidate"), BulkString(b"k")))
        finally:
            await stop(client, run_task)


class TestSendWithoutConnection:
    """Test send() when no connection is available."""

    @pytest.mark.asyncio
    async def test_send_before_run_times_out(self, scripted_server):
        """Test that send() waits at most connect_timeout for a connection."""
        client = ValkeyClient(scripted_server.address, fast_config(connect_timeout=0.1))
        with pytest.raises(ValkeyConnectionError, match="no connection"):
            await client.ping()

    @pytest.mark.asyncio
    async def test_send_after_stop(self, scripted_server):
        """Test that send() fails immediately once the client stopped."""
        client = ValkeyClient(scripted_server.address, fast_config())
        run_task = asyncio.create_task(client.run())
        await client.ping()
        await stop(client, run_task)

        with pytest.raises(ValkeyConnectionError, match="not running"):
            await client.ping()


class TestReconnection:
    """Test the reconnection policy."""

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_loss(self, scripted_server):
        """Test that a dropped connection is replaced and handshaken again."""
        client = ValkeyClient(scripted_server.address, fast_config())
        run_task = asyncio.create_task(client.run())
        try:
            await client.ping()
            await scripted_server.drop_connections()
            await wait_until(lambda: scripted_server.connection_count == 2)

            assert await client.ping() == "PONG"
            assert scripted_server.received.count([b"HELLO", b"3"]) == 2
            metrics = client.get_metrics()
            assert metrics.reconnects == 1
            assert metrics.connection_failures == 1
            assert metrics.commands_sent == 4
        finally:
            await stop(client, run_task)

    @pytest.mark.asyncio
    async def test_no_reconnect(self, scripted_server):
        """Test that run() raises when reconnection is disabled."""
        client = ValkeyClient(scripted_server.address, fast_config(reconnect=False))
        run_task = asyncio.create_task(client.run())
        await client.ping()
        await scripted_server.drop_connections()

        with pytest.raises(ValkeyConnectionError):
            await asyncio.wait_for(run_task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, tmp_path):
        """Test that connection attempts stop at reconnect_max_attempts."""
        address = UnixSocketAddress(str(tmp_path / "missing.sock"))
        client = ValkeyClient(address, fast_config(reconnect_max_attempts=3))
        with pytest.raises(ValkeyConnectionError, match="Failed to connect"):
            await asyncio.wait_for(client.run(), timeout=2.0)
        assert client.get_metrics().connection_failures == 3

    @pytest.mark.asyncio
    async def test_rejected_handshake_backs_off_and_gives_up(self, scripted_server):
        """Test that each rejected handshake counts as an attempt and waits before the next."""
        scripted_server.handler = lambda command: b"-ERR unknown command 'HELLO'\r\n"
        client = ValkeyClient(
            scripted_server.address,
            fast_config(
                reconnect_max_attempts=3,
                reconnect_backoff_base=0.1,
                reconnect_backoff_max=0.1,
            ),
        )
        started = time.perf_counter()
        with pytest.raises(ValkeyConnectionError, match="Handshake"):
            await asyncio.wait_for(client.run(), timeout=2.0)

        assert time.perf_counter() - started >= 0.15
        assert scripted_server.connection_count == 3
        assert scripted_server.received == [[b"HELLO", b"3"]] * 3
        assert client.get_metrics().connection_failures == 3

    @pytest.mark.asyncio
    async def test_close_during_backoff(self, tmp_path):
        """Test that close() interrupts the wait between attempts."""
        address = UnixSocketAddress(str(tmp_path / "missing.sock"))
        config = fast_config(reconnect_backoff_base=10.0, reconnect_backoff_max=10.0)
        client = ValkeyClient(address, config)
        run_task = asyncio.create_task(client.run())
        await wait_until(lambda: client.get_metrics().connection_failures == 1)

        await client.close()
        await asyncio.wait_for(run_task, timeout=2.0)


class TestSentinel:
    """Test primary resolution through sentinels."""

    @pytest.mark.asyncio
    async def test_resolves_primary(self, scripted_server, make_server):
        """Test that the client connects to the address the sentinel reports."""
        primary = await make_server()
        host = primary.address.host.encode()
        port = str(primary.address.port).encode()
        scripted_server.handler = lambda command: b"*2\r\n$%d\r\n%s\r\n$%d\r\n%s\r\n" % (
            len(host),
            host,
            len(port),
            port,
        )

        address = SentinelAddress("mymaster", (scripted_server.address,))
        client = ValkeyClient(address, fast_config())
        run_task = asyncio.create_task(client.run())
        try:
            assert await client.ping() == "PONG"
            assert scripted_server.received == [[b"SENTINEL", b"GET-MASTER-ADDR-BY-NAME", b"mymaster"]]
            assert primary.received == [[b"HELLO", b"3"], [b"PING"]]
        finally:
            await stop(client, run_task)

    @pytest.mark.asyncio
    async def test_unknown_primary(self, scripted_server):
        """Test that a null sentinel reply is a connection failure."""
        scripted_server.handler = lambda command: b"*-1\r\n"
        address = SentinelAddress("unknown", (scripted_server.address,))
        client = ValkeyClient(address, fast_config(reconnect=False))
        with pytest.raises(ValkeyConnectionError, match="No sentinel resolved"):
            await asyncio.wait_for(client.run(), timeout=2.0)

    @pytest.mark.asyncio
    async def test_no_sentinels(self):
        """Test that an empty sentinel list cannot be resolved."""
        client = ValkeyClient(SentinelAddress("mymaster"), fast_config(reconnect=False))
        with pytest.raises(ValkeyConnectionError, match="No sentinels"):
            await client.run()
