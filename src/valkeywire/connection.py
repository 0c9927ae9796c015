"""Single connection to a Valkey server.

A ValkeyConnection owns one byte channel (TCP or unix socket), the frame
decoder reading from it and the pipeline matching replies to callers.

The read loop, run(), is the only code that reads from the channel. It must be
running for send() to ever complete:

    connection = await ValkeyConnection.connect(HostnameAddress("localhost"))
    loop_task = asyncio.create_task(connection.run())
    try:
        await connection.ping()
    finally:
        loop_task.cancel()

Cancelling the read loop fails every outstanding send() with
ValkeyConnectionError and leaves the connection CLOSED.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from enum import Enum

from valkeywire.commands import ValkeyCommands
from valkeywire.contrib.prometheus.metrics import record_command as _prom_command
from valkeywire.contrib.prometheus.metrics import (
    record_connection_failure as _prom_connection_failure,
)
from valkeywire.contrib.prometheus.metrics import record_discarded_reply as _prom_discarded
from valkeywire.contrib.prometheus.metrics import record_push as _prom_push
from valkeywire.contrib.prometheus.metrics import record_server_error as _prom_server_error
from valkeywire.contrib.prometheus.metrics import set_pending_requests as _prom_pending
from valkeywire.core import CommandExecutor, ConnectionMetrics
from valkeywire.decoding import unwrap
from valkeywire.domain.value_objects.wire_value import ERROR_TYPES, Push, WireValue
from valkeywire.exceptions import (
    CommandTimeoutError,
    ProtocolError,
    ServerError,
    ValkeyConnectionError,
)
from valkeywire.pipeline import CommandPipeline, PendingRequest
from valkeywire.protocol.decoder import FrameDecoder
from valkeywire.protocol.encoder import encode_command, encode_commands
from valkeywire.schemas import ClientConfiguration, HostnameAddress, UnixSocketAddress

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle of a connection.

    CONNECTING -> CONNECTED -> CLOSING -> CLOSED, or FAILED from any state
    before CLOSED. FAILED behaves like CLOSED for pending requests.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


def _command_name(command: Sequence[bytes]) -> str:
    if not command:
        raise ValueError("Command must contain at least the command name")
    return bytes(command[0]).decode("utf-8", "replace").upper()


class ValkeyConnection(CommandExecutor, ValkeyCommands):
    """Connection to one resolved server endpoint.

    Any number of tasks may call send() concurrently. Replies are delivered in
    the order the commands were written. Push messages (RESP3 out-of-band
    values) are put on push_messages instead of completing a request.

    A caller that is cancelled or times out after its command was written
    only stops waiting: the reply still arrives and is discarded in order.
    """

    def __init__(
        self,
        target: HostnameAddress | UnixSocketAddress,
        configuration: ClientConfiguration | None = None,
        name: str | None = None,
        push_messages: asyncio.Queue[Push] | None = None,
    ) -> None:
        """Create an unopened connection (use connect() instead).

        Args:
            target: Endpoint to connect to
            configuration: Timeouts and read size (defaults if None)
            name: Label used in logs and metrics (defaults to the target)
            push_messages: Queue receiving push messages (a new one if None)
        """
        self._target = target
        self._configuration = configuration or ClientConfiguration()
        self.name = name or str(target)

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._decoder = FrameDecoder()
        self._pipeline = CommandPipeline()
        self._state = ConnectionState.CONNECTING
        self._running = False
        self._metrics = ConnectionMetrics()

        self.push_messages: asyncio.Queue[Push] = (
            asyncio.Queue(maxsize=self._configuration.push_queue_size)
            if push_messages is None
            else push_messages
        )

    @classmethod
    async def connect(
        cls,
        target: HostnameAddress | UnixSocketAddress,
        configuration: ClientConfiguration | None = None,
        name: str | None = None,
        push_messages: asyncio.Queue[Push] | None = None,
    ) -> ValkeyConnection:
        """Open a connection to target.

        Args:
            target: Resolved endpoint (sentinel addresses are resolved by ValkeyClient)
            configuration: Timeouts and read size (defaults if None)
            name: Label used in logs and metrics
            push_messages: Queue receiving push messages (a new one if None)

        Returns:
            A CONNECTED connection whose read loop has not been started

        Raises:
            ValkeyConnectionError: If the channel cannot be opened within
                                   connect_timeout
        """
        connection = cls(target, configuration, name, push_messages)
        await connection._open()
        return connection

    async def _open(self) -> None:
        target = self._target
        if isinstance(target, UnixSocketAddress):
            opener = asyncio.open_unix_connection(target.path)
        elif isinstance(target, HostnameAddress):
            opener = asyncio.open_connection(target.host, target.port)
        else:
            raise TypeError(f"Cannot open a connection to {type(target).__name__}")

        try:
            self._reader, self._writer = await asyncio.wait_for(
                opener, timeout=self._configuration.connect_timeout
            )
        except (OSError, TimeoutError) as e:
            self._state = ConnectionState.FAILED
            reason = str(e) or type(e).__name__
            raise ValkeyConnectionError(f"Failed to connect to {target}: {reason}") from e

        self._state = ConnectionState.CONNECTED
        logger.info("Connected to %s", target)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def target(self) -> HostnameAddress | UnixSocketAddress:
        """Endpoint this connection talks to."""
        return self._target

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def pending_requests(self) -> int:
        """Number of written commands still waiting for a reply."""
        return len(self._pipeline)

    def get_metrics(self) -> ConnectionMetrics:
        """Return metrics collected by this connection."""
        return self._metrics

    # =========================================================================
    # READ LOOP
    # =========================================================================

    async def run(self) -> None:
        """Read replies until the connection ends.

        Returns normally after close(). Raises the terminal error when the
        peer closes the channel, a read fails or the byte stream is
        malformed. In every case all outstanding requests are failed with
        ValkeyConnectionError before this method returns or raises.

        Raises:
            ValkeyConnectionError: If the channel failed or was closed by the peer
            ProtocolError: If the server sent bytes that are not valid RESP
            asyncio.CancelledError: If the read loop task was cancelled
        """
        if self._state is not ConnectionState.CONNECTED or self._reader is None:
            raise ValkeyConnectionError(f"Connection to {self._target} is {self._state.value}")
        if self._running:
            raise RuntimeError("run() is already active for this connection")

        self._running = True
        read_size = self._configuration.read_size
        try:
            while True:
                try:
                    data = await self._reader.read(read_size)
                except OSError as e:
                    raise ValkeyConnectionError(f"Read from {self._target} failed: {e}") from e

                if not data:
                    if self._state is ConnectionState.CLOSING:
                        break
                    raise ValkeyConnectionError(f"Connection to {self._target} closed by peer")

                self._decoder.feed(data)
                for value in self._decoder:
                    self._dispatch(value)
        except asyncio.CancelledError:
            self._state = ConnectionState.CLOSING
            self._finish(ConnectionState.CLOSED, "Connection run loop cancelled")
            raise
        except (ValkeyConnectionError, ProtocolError) as e:
            if self._state is ConnectionState.CLOSING:
                # close() raced with a failing read
                self._finish(ConnectionState.CLOSED, "Connection closed")
                return
            logger.error("Connection to %s failed: %s", self._target, e)
            self._metrics.record_connection_failure()
            _prom_connection_failure(self.name)
            self._finish(ConnectionState.FAILED, f"Connection to {self._target} failed: {e}")
            raise
        except Exception as e:
            logger.error("Read loop of %s stopped unexpectedly: %r", self._target, e)
            self._metrics.record_connection_failure()
            _prom_connection_failure(self.name)
            self._finish(ConnectionState.FAILED, f"Read loop of {self._target} stopped: {e!r}")
            raise
        else:
            self._finish(ConnectionState.CLOSED, "Connection closed")
        finally:
            self._running = False
            if self._writer is not None and not self._writer.is_closing():
                self._writer.close()

    def _dispatch(self, value: WireValue) -> None:
        """Route one decoded top-level value."""
        push = unwrap(value)
        if isinstance(push, Push):
            self._metrics.record_push()
            _prom_push(self.name)
            if self.push_messages.full():
                dropped = self.push_messages.get_nowait()
                self._metrics.record_dropped_push()
                logger.debug("Push queue of %s is full, dropped %s", self._target, dropped)
            self.push_messages.put_nowait(push)
            return

        request = self._pipeline.complete_next(value)
        if request is None:
            raise ProtocolError(
                f"Received {value.type_name} reply with no outstanding request"
            )

        if request.detached:
            self._metrics.record_discarded_reply()
            _prom_discarded(self.name)
        else:
            latency = time.perf_counter() - request.started_at
            self._metrics.record_reply(latency * 1000)
            _prom_command(self.name, request.command, latency)
        _prom_pending(self.name, len(self._pipeline))

    def _finish(self, state: ConnectionState, reason: str) -> None:
        failed = self._pipeline.fail_all(ValkeyConnectionError(reason))
        self._state = state
        _prom_pending(self.name, 0)
        if state is ConnectionState.CLOSED:
            logger.info("Connection to %s closed (%d pending requests failed)", self._target, failed)

    # =========================================================================
    # SENDING
    # =========================================================================

    def _ensure_connected(self) -> None:
        if self._state is not ConnectionState.CONNECTED or self._writer is None:
            raise ValkeyConnectionError(f"Connection to {self._target} is {self._state.value}")

    async def _drain(self, requests: Sequence[PendingRequest]) -> None:
        assert self._writer is not None
        try:
            await self._writer.drain()
        except OSError as e:
            for request in requests:
                request.detach()
            raise ValkeyConnectionError(f"Write to {self._target} failed: {e}") from e
        except asyncio.CancelledError:
            for request in requests:
                request.detach()
            raise

    async def _wait(self, request: PendingRequest) -> WireValue:
        timeout = self._configuration.command_timeout
        try:
            async with asyncio.timeout(timeout):
                reply = await request.wait()
        except TimeoutError as e:
            logger.warning(
                "No reply to '%s' from %s within %ss, discarding it",
                request.command,
                self._target,
                timeout,
            )
            raise CommandTimeoutError(request.command, timeout) from e
        return reply

    def _check_reply(self, reply: WireValue) -> WireValue:
        error = unwrap(reply)
        if isinstance(error, ERROR_TYPES):
            server_error = ServerError(error.message)
            self._metrics.record_server_error()
            _prom_server_error(self.name, server_error.kind)
            raise server_error
        return reply

    async def send(self, command: Sequence[bytes]) -> WireValue:
        """Write one command and wait for its reply.

        Args:
            command: Command name followed by its arguments, as bytes

        Returns:
            The reply (Error and BulkError replies are raised instead)

        Raises:
            ValkeyConnectionError: If the connection is not CONNECTED, or
                                   closed before the reply arrived
            ServerError: If the server replied with an error
            CommandTimeoutError: If command_timeout elapsed first
        """
        self._ensure_connected()
        assert self._writer is not None

        name = _command_name(command)
        # No suspension point between enqueue and write: pipeline order is
        # always write order.
        request = self._pipeline.enqueue(name)
        self._writer.write(encode_command(command))
        self._metrics.record_command()
        _prom_pending(self.name, len(self._pipeline))
        logger.debug("Sent '%s' to %s", name, self._target)

        await self._drain([request])
        return self._check_reply(await self._wait(request))

    async def send_batch(
        self, commands: Sequence[Sequence[bytes]]
    ) -> list[WireValue | ServerError]:
        """Pipeline several commands in a single write.

        Args:
            commands: Commands, each a command name followed by its arguments

        Returns:
            One entry per command, in order: the reply, or the ServerError
            the server answered with

        Raises:
            ValkeyConnectionError: If the connection is not CONNECTED or fails
            CommandTimeoutError: If command_timeout elapsed while waiting
        """
        self._ensure_connected()
        assert self._writer is not None
        if not commands:
            return []

        names = [_command_name(command) for command in commands]
        requests = [self._pipeline.enqueue(name) for name in names]
        self._writer.write(encode_commands(commands))
        self._metrics.record_command(len(requests))
        _prom_pending(self.name, len(self._pipeline))
        logger.debug("Sent batch of %d commands to %s", len(requests), self._target)

        await self._drain(requests)

        results: list[WireValue | ServerError] = []
        try:
            for request in requests:
                try:
                    results.append(self._check_reply(await self._wait(request)))
                except ServerError as e:
                    results.append(e)
        except BaseException:
            for request in requests[len(results) :]:
                request.detach()
            raise
        return results

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    async def close(self) -> None:
        """Close the channel and fail outstanding requests.

        A running read loop observes the end of the channel and returns.
        Calling close() more than once is harmless.
        """
        if self._state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            return
        if self._state is ConnectionState.CLOSING:
            return

        self._state = ConnectionState.CLOSING
        self._pipeline.fail_all(ValkeyConnectionError(f"Connection to {self._target} closed"))

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError as e:
                logger.debug("Error while closing connection to %s: %s", self._target, e)

        if not self._running:
            self._finish(ConnectionState.CLOSED, "Connection closed")

    async def __aenter__(self) -> ValkeyConnection:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"ValkeyConnection(target={self._target!s}, state={self._state.value})"
