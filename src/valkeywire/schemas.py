"""
Configuration schemas for server addresses and clients.

This module defines the configuration structures using dataclasses for type safety
and clear documentation. Each address kind (hostname, unix, sentinel) defines its
own schema; ClientConfiguration holds the knobs consumed when a connection is
established.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


@dataclass(frozen=True)
class HostnameAddress:
    """TCP endpoint.

    Attributes:
        host: Host name or IP address (supports env var expansion via ${VAR})
        port: TCP port
        address: Address kind identifier (always "hostname")
    """

    host: str
    port: int = 6379
    address: Literal["hostname"] = "hostname"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class UnixSocketAddress:
    """Unix domain socket endpoint.

    Attributes:
        path: Filesystem path of the socket
        address: Address kind identifier (always "unix")
    """

    path: str
    address: Literal["unix"] = "unix"

    def __str__(self) -> str:
        return f"unix:{self.path}"


@dataclass(frozen=True)
class SentinelAddress:
    """Primary discovered through a set of sentinels.

    The sentinels are asked, in order, for the current address of the primary
    registered under primary_name. The first answer wins.

    Attributes:
        primary_name: Name of the monitored primary
        sentinels: Sentinel endpoints, tried in order
        address: Address kind identifier (always "sentinel")
    """

    primary_name: str
    sentinels: tuple[HostnameAddress, ...] = ()
    address: Literal["sentinel"] = "sentinel"

    def __str__(self) -> str:
        endpoints = ",".join(str(sentinel) for sentinel in self.sentinels)
        return f"sentinel:{self.primary_name}@{endpoints}"


ServerAddress = Union[HostnameAddress, UnixSocketAddress, SentinelAddress]


@dataclass
class ClientConfiguration:
    """Connection establishment and reconnection policy.

    Attributes:
        protocol: RESP version negotiated with HELLO (3) or left at the default (2)
        connect_timeout: Seconds allowed to open the channel and to wait for
                         a ready connection in send()
        command_timeout: Seconds a caller waits for a reply (None = no limit).
                         A timed-out reply is still consumed in order.
        database: Database selected after connecting (0 = no SELECT)
        client_name: Name set with CLIENT SETNAME after connecting
        read_size: Maximum bytes requested per read from the channel
        push_queue_size: Capacity of the push message queue (0 = unbounded).
                         When full, the oldest message is dropped.
        reconnect: If True, the run loop opens a new connection after a failure
        reconnect_max_attempts: Consecutive failed attempts before giving up
                                (None = retry forever)
        reconnect_backoff_base: First delay between attempts, in seconds
        reconnect_backoff_max: Upper bound of the exponential delay, in seconds
        sentinel_timeout: Seconds allowed for each sentinel query
    """

    protocol: Literal[2, 3] = 3
    connect_timeout: float = 5.0
    command_timeout: float | None = None
    database: int = 0
    client_name: str | None = None
    read_size: int = 65536
    push_queue_size: int = 0
    reconnect: bool = True
    reconnect_max_attempts: int | None = None
    reconnect_backoff_base: float = 0.1
    reconnect_backoff_max: float = 5.0
    sentinel_timeout: float = 2.0

    def __post_init__(self) -> None:
        """Validate value ranges."""
        if self.protocol not in (2, 3):
            raise ValueError(f"protocol must be 2 or 3, got {self.protocol}")
        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be > 0, got {self.connect_timeout}")
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be > 0, got {self.command_timeout}")
        if self.database < 0:
            raise ValueError(f"database must be >= 0, got {self.database}")
        if self.read_size <= 0:
            raise ValueError(f"read_size must be > 0, got {self.read_size}")
        if self.push_queue_size < 0:
            raise ValueError(f"push_queue_size must be >= 0, got {self.push_queue_size}")
        if self.reconnect_max_attempts is not None and self.reconnect_max_attempts <= 0:
            raise ValueError(
                f"reconnect_max_attempts must be > 0, got {self.reconnect_max_attempts}"
            )
        if self.reconnect_backoff_base < 0 or self.reconnect_backoff_max < 0:
            raise ValueError("reconnect backoff delays must be >= 0")

    def backoff_delay(self, attempt: int) -> float:
        """Return the delay before reconnection attempt number attempt (1-based)."""
        return min(self.reconnect_backoff_base * (2 ** (attempt - 1)), self.reconnect_backoff_max)


@dataclass
class ClientReadOnlyConfig:
    """Read-only snapshot of a registered client's configuration.

    Attributes:
        name: Registry name of the client
        address: Address the client connects to
        configuration: Connection policy
    """

    name: str
    address: ServerAddress
    configuration: ClientConfiguration = field(default_factory=ClientConfiguration)


# Address kind name to schema mapping
ADDRESS_SCHEMAS: dict[str, type] = {
    "hostname": HostnameAddress,
    "unix": UnixSocketAddress,
    "sentinel": SentinelAddress,
}
