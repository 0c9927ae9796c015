"""Long-lived client that keeps a connection to a server address.

ValkeyClient resolves its address, owns one ValkeyConnection at a time and
drives that connection's read loop from run(). Commands are issued from any
number of other tasks while run() is active:

    client = ValkeyClient(HostnameAddress("localhost"))
    run_task = asyncio.create_task(client.run())
    try:
        await client.lpush(key, "a", "b")
    finally:
        run_task.cancel()

When the connection fails, run() opens a new one according to the
reconnection policy of ClientConfiguration. Requests that were outstanding on
the failed connection are failed with ValkeyConnectionError; they are never
replayed on the new connection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from valkeywire.commands import ValkeyCommands
from valkeywire.connection import ValkeyConnection
from valkeywire.contrib.prometheus.metrics import record_reconnect as _prom_reconnect
from valkeywire.core import CommandExecutor, ConnectionMetrics
from valkeywire.domain.value_objects.wire_value import Push, WireValue
from valkeywire.exceptions import (
    CommandTimeoutError,
    DecodeError,
    ProtocolError,
    ServerError,
    ValkeyConnectionError,
    ValkeyError,
)
from valkeywire.schemas import (
    ClientConfiguration,
    HostnameAddress,
    SentinelAddress,
    ServerAddress,
    UnixSocketAddress,
)

logger = logging.getLogger(__name__)


class ValkeyClient(CommandExecutor, ValkeyCommands):
    """Client for one server address.

    Args:
        address: Where to connect (hostname, unix socket or sentinel set)
        configuration: Connection and reconnection policy
        name: Label used in logs, metrics and the registry
    """

    def __init__(
        self,
        address: ServerAddress,
        configuration: ClientConfiguration | None = None,
        name: str = "default",
    ) -> None:
        self._address = address
        self._configuration = configuration or ClientConfiguration()
        self.name = name

        self._connection: ValkeyConnection | None = None
        self._ready = asyncio.Event()
        self._close_requested = asyncio.Event()
        self._running = False
        self._stopped = False
        self._metrics = ConnectionMetrics()

        self.push_messages: asyncio.Queue[Push] = asyncio.Queue(
            maxsize=self._configuration.push_queue_size
        )

    @property
    def address(self) -> ServerAddress:
        """Configured address (before sentinel resolution)."""
        return self._address

    @property
    def configuration(self) -> ClientConfiguration:
        """Connection and reconnection policy."""
        return self._configuration

    @property
    def is_connected(self) -> bool:
        """True while a handshaken connection is available to send()."""
        return self._connection is not None

    def get_metrics(self) -> ConnectionMetrics:
        """Return metrics of all connections this client has owned."""
        if self._connection is None:
            return self._metrics.merged(ConnectionMetrics())
        return self._metrics.merged(self._connection.get_metrics())

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    async def run(self) -> None:
        """Keep a connection open until close() is called or the task is cancelled.

        A failed connect, sentinel resolution or handshake counts as one
        failed attempt. Every new attempt waits for the backoff delay first.

        Raises:
            ValkeyConnectionError: If reconnection is disabled or the maximum
                                   number of attempts was reached
            ProtocolError: If the server sent malformed data and reconnection
                           is disabled
            asyncio.CancelledError: If the task running this method was cancelled
        """
        if self._running:
            raise RuntimeError(f"Client '{self.name}' is already running")

        self._running = True
        self._stopped = False
        self._ready.clear()
        self._close_requested.clear()
        config = self._configuration
        attempt = 0
        try:
            while not self._close_requested.is_set():
                try:
                    connection, loop_task = await self._establish()
                except ValkeyConnectionError as e:
                    attempt += 1
                    self._metrics.record_connection_failure()
                    if not config.reconnect or (
                        config.reconnect_max_attempts is not None
                        and attempt >= config.reconnect_max_attempts
                    ):
                        logger.error(
                            "Client '%s' giving up after %d connection attempts: %s",
                            self.name,
                            attempt,
                            e,
                        )
                        raise
                    delay = config.backoff_delay(attempt)
                    logger.warning(
                        "Client '%s' failed to connect (attempt %d): %s. Retrying in %.2fs",
                        self.name,
                        attempt,
                        e,
                        delay,
                    )
                    await self._sleep_unless_closed(delay)
                    continue

                # Only a published connection resets the consecutive failure count
                attempt = 0
                error = await self._serve(connection, loop_task)
                if error is None or self._close_requested.is_set():
                    return
                if not config.reconnect:
                    raise error

                self._metrics.record_reconnect()
                _prom_reconnect(self.name)
                delay = config.backoff_delay(1)
                logger.warning(
                    "Client '%s' lost its connection: %s. Reconnecting in %.2fs",
                    self.name,
                    error,
                    delay,
                )
                await self._sleep_unless_closed(delay)
        finally:
            self._running = False
            self._stopped = True
            self._connection = None
            # Wake callers blocked in send(); they observe the stopped state
            self._ready.set()
            logger.info("Client '%s' stopped", self.name)

    async def _sleep_unless_closed(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._close_requested.wait(), timeout=delay)
        except TimeoutError:
            pass

    async def _establish(self) -> tuple[ValkeyConnection, asyncio.Task[None]]:
        """Open a connection to the resolved address and handshake it.

        Returns:
            The connection and the task running its read loop

        Raises:
            ValkeyConnectionError: If resolution, connecting or the handshake failed
        """
        target = await self._resolve()
        connection = await ValkeyConnection.connect(
            target, self._configuration, name=self.name, push_messages=self.push_messages
        )
        loop_task = asyncio.create_task(connection.run(), name=f"valkeywire-{self.name}")
        try:
            await self._handshake(connection)
        except (ServerError, DecodeError, CommandTimeoutError) as e:
            logger.error("Handshake with %s failed: %s", connection.target, e)
            await self._discard(connection, loop_task)
            raise ValkeyConnectionError(f"Handshake with {connection.target} failed: {e}") from e
        except BaseException:
            await self._discard(connection, loop_task)
            raise
        return connection, loop_task

    async def _discard(self, connection: ValkeyConnection, loop_task: asyncio.Task[None]) -> None:
        await connection.close()
        if not loop_task.done():
            loop_task.cancel()
        await asyncio.gather(loop_task, return_exceptions=True)
        self._metrics = self._metrics.merged(connection.get_metrics())

    async def _serve(
        self, connection: ValkeyConnection, loop_task: asyncio.Task[None]
    ) -> ValkeyError | None:
        """Publish a handshaken connection and wait until it ends.

        Returns:
            None when the connection was closed on request, otherwise the
            error that ended it
        """
        try:
            if self._close_requested.is_set():
                await connection.close()
            else:
                self._connection = connection
                self._ready.set()
                logger.info("Client '%s' ready on %s", self.name, connection.target)

            await loop_task
            return None
        except (ValkeyConnectionError, ProtocolError) as e:
            return e
        finally:
            self._ready.clear()
            self._connection = None
            if not loop_task.done():
                loop_task.cancel()
            # The loop's outcome was either returned above or is superseded by
            # the exception propagating from here
            await asyncio.gather(loop_task, return_exceptions=True)
            self._metrics = self._metrics.merged(connection.get_metrics())

    async def _handshake(self, connection: ValkeyConnection) -> None:
        config = self._configuration
        if config.protocol == 3:
            await connection.execute("HELLO", 3)
        if config.client_name:
            await connection.execute("CLIENT", "SETNAME", config.client_name, decode_as=str)
        if config.database:
            await connection.execute("SELECT", config.database, decode_as=str)

    # =========================================================================
    # ADDRESS RESOLUTION
    # =========================================================================

    async def _resolve(self) -> HostnameAddress | UnixSocketAddress:
        address = self._address
        if not isinstance(address, SentinelAddress):
            return address

        if not address.sentinels:
            raise ValkeyConnectionError(f"No sentinels configured for '{address.primary_name}'")

        failures = []
        for sentinel in address.sentinels:
            try:
                return await self._ask_sentinel(sentinel, address.primary_name)
            except (ValkeyConnectionError, ServerError, DecodeError, CommandTimeoutError) as e:
                logger.warning(
                    "Sentinel %s could not resolve '%s': %s", sentinel, address.primary_name, e
                )
                failures.append(f"{sentinel}: {e}")

        raise ValkeyConnectionError(
            f"No sentinel resolved primary '{address.primary_name}' ({'; '.join(failures)})"
        )

    async def _ask_sentinel(self, sentinel: HostnameAddress, primary_name: str) -> HostnameAddress:
        timeout = self._configuration.sentinel_timeout
        query_config = ClientConfiguration(
            protocol=2, connect_timeout=timeout, command_timeout=timeout, reconnect=False
        )
        connection = await ValkeyConnection.connect(
            sentinel, query_config, name=f"{self.name}-sentinel"
        )
        loop_task = asyncio.create_task(connection.run())
        try:
            reply = await connection.execute(
                "SENTINEL",
                "GET-MASTER-ADDR-BY-NAME",
                primary_name,
                decode_as=tuple[str, int] | None,
            )
        finally:
            await connection.close()
            await asyncio.gather(loop_task, return_exceptions=True)

        if reply is None:
            raise ValkeyConnectionError(f"Sentinel {sentinel} does not know primary '{primary_name}'")

        host, port = reply
        logger.info("Sentinel %s resolved '%s' to %s:%d", sentinel, primary_name, host, port)
        return HostnameAddress(host=host, port=port)

    # =========================================================================
    # SENDING
    # =========================================================================

    async def _wait_for_connection(self) -> ValkeyConnection:
        timeout = self._configuration.connect_timeout
        try:
            async with asyncio.timeout(timeout):
                while True:
                    if self._connection is not None:
                        return self._connection
                    if self._stopped:
                        raise ValkeyConnectionError(f"Client '{self.name}' is not running")
                    await self._ready.wait()
        except TimeoutError as e:
            raise ValkeyConnectionError(
                f"Client '{self.name}' has no connection after {timeout}s"
            ) from e

    async def send(self, command: Sequence[bytes]) -> WireValue:
        """Send one command on the current connection.

        Waits up to connect_timeout for a connection when none is ready.

        Raises:
            ValkeyConnectionError: If no connection became ready in time, the
                                   client stopped, or the connection failed
                                   before the reply arrived
            ServerError: If the server replied with an error
            CommandTimeoutError: If command_timeout elapsed first
        """
        connection = await self._wait_for_connection()
        return await connection.send(command)

    async def send_batch(
        self, commands: Sequence[Sequence[bytes]]
    ) -> list[WireValue | ServerError]:
        """Pipeline several commands on the current connection.

        See ValkeyConnection.send_batch().
        """
        connection = await self._wait_for_connection()
        return await connection.send_batch(commands)

    async def next_push(self) -> Push:
        """Wait for the next out-of-band push message.

        Pushes accumulate until they are read. With push_queue_size set, the
        oldest unread push is dropped to make room for a new one.
        """
        return await self.push_messages.get()

    async def close(self) -> None:
        """Close the current connection and make run() return."""
        self._close_requested.set()
        connection = self._connection
        if connection is not None:
            await connection.close()

    def __repr__(self) -> str:
        return f"ValkeyClient(name={self.name!r}, address={self._address!s})"
