"""Core abstractions shared by connections and clients.

Both ValkeyConnection and ValkeyClient implement CommandExecutor, so the
command surface (valkeywire.commands) works unchanged on either of them.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from valkeywire.decoding import decode
from valkeywire.domain.value_objects.wire_value import WireValue
from valkeywire.protocol.encoder import CommandArg, build_command


@dataclass
class ConnectionMetrics:
    """Observability metrics for a connection or client.

    Attributes:
        commands_sent: Total number of commands written to the channel
        replies_received: Total number of replies matched to a request
        server_errors: Replies that were Error or BulkError values
        push_messages: Out-of-band Push values received
        discarded_replies: Replies consumed for callers that stopped waiting
        dropped_push_messages: Push values dropped because the push queue was full
        connection_failures: Connections that ended with an I/O or framing error
        reconnects: Connections re-established by the client run loop
        total_latency_ms: Accumulated time between write and reply (ms)
        avg_latency_ms: Average time between write and reply (ms)
        max_latency_ms: Maximum time between write and reply (ms)
        last_reply_at: Timestamp of the last matched reply
    """

    commands_sent: int = 0
    replies_received: int = 0
    server_errors: int = 0
    push_messages: int = 0
    discarded_replies: int = 0
    dropped_push_messages: int = 0
    connection_failures: int = 0
    reconnects: int = 0
    total_latency_ms: float = 0.0
    avg_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    last_reply_at: float | None = None

    def record_command(self, count: int = 1) -> None:
        """Record commands written to the channel."""
        self.commands_sent += count

    def record_reply(self, latency_ms: float) -> None:
        """Record a reply matched to its request."""
        self.replies_received += 1
        self.total_latency_ms += latency_ms
        self.avg_latency_ms = self.total_latency_ms / self.replies_received
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        self.last_reply_at = time.time()

    def record_server_error(self) -> None:
        """Record an error reply."""
        self.server_errors += 1

    def record_push(self) -> None:
        """Record an out-of-band push message."""
        self.push_messages += 1

    def record_discarded_reply(self) -> None:
        """Record a reply nobody was waiting for anymore."""
        self.discarded_replies += 1

    def record_dropped_push(self) -> None:
        """Record a push message evicted from a full push queue."""
        self.dropped_push_messages += 1

    def record_connection_failure(self) -> None:
        """Record a connection that failed."""
        self.connection_failures += 1

    def record_reconnect(self) -> None:
        """Record a reconnection."""
        self.reconnects += 1

    def merged(self, other: ConnectionMetrics) -> ConnectionMetrics:
        """Return the combined metrics of self and other (neither is modified)."""
        replies = self.replies_received + other.replies_received
        total_latency = self.total_latency_ms + other.total_latency_ms
        reply_times = [t for t in (self.last_reply_at, other.last_reply_at) if t is not None]
        return ConnectionMetrics(
            commands_sent=self.commands_sent + other.commands_sent,
            replies_received=replies,
            server_errors=self.server_errors + other.server_errors,
            push_messages=self.push_messages + other.push_messages,
            discarded_replies=self.discarded_replies + other.discarded_replies,
            dropped_push_messages=self.dropped_push_messages + other.dropped_push_messages,
            connection_failures=self.connection_failures + other.connection_failures,
            reconnects=self.reconnects + other.reconnects,
            total_latency_ms=total_latency,
            avg_latency_ms=total_latency / replies if replies else 0.0,
            max_latency_ms=max(self.max_latency_ms, other.max_latency_ms),
            last_reply_at=max(reply_times) if reply_times else None,
        )


class CommandExecutor(ABC):
    """Anything that can send a command and return its reply.

    Subclasses provide send(); execute() adds argument normalisation and
    typed decoding on top of it.

    Example:
        >>> length = await executor.execute("LPUSH", key, "a", "b", decode_as=int)
        >>> values = await executor.execute("LRANGE", key, 0, -1, decode_as=list[str])
    """

    @abstractmethod
    async def send(self, command: Sequence[bytes]) -> WireValue:
        """Send one command and wait for its reply.

        Args:
            command: Command name followed by its arguments, as bytes

        Returns:
            The reply

        Raises:
            ServerError: If the server replied with an error
            ValkeyConnectionError: If the connection is not usable or closed
                                   before the reply arrived
        """

    @abstractmethod
    def get_metrics(self) -> ConnectionMetrics:
        """Return observability metrics.

        Returns:
            Current snapshot of collected metrics
        """

    async def execute(self, *args: CommandArg, decode_as: Any = WireValue) -> Any:
        """Send a command built from args and decode its reply.

        Args:
            *args: Command name and arguments (bytes, str, int, float, ValkeyKey)
            decode_as: Requested reply shape (see valkeywire.decoding.decode)

        Returns:
            The decoded reply

        Raises:
            DecodeError: If the reply does not have the requested shape
            ServerError: If the server replied with an error
            ValkeyConnectionError: If the connection failed
        """
        reply = await self.send(build_command(*args))
        return decode(reply, decode_as)
