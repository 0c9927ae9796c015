"""valkey-wire: asyncio client engine for Valkey and Redis (RESP2/RESP3).

This package provides the pieces of a RESP client from the byte level up:

Features:
- Incremental, restartable RESP3 frame decoder (RESP2 replies included)
- Request encoder (array of bulk strings)
- Typed decode layer narrowing replies to Python shapes
- Pipelined connections matching replies to callers in FIFO order
- Long-lived clients with sentinel resolution and reconnection
- Configuration file support (TOML with env var expansion)
- Integrated metrics for observability (optionally exported to Prometheus)

Basic example:
    >>> import asyncio
    >>> from valkeywire import HostnameAddress, ValkeyClient, ValkeyKey
    >>>
    >>> client = ValkeyClient(HostnameAddress("localhost", 6379))
    >>> run_task = asyncio.create_task(client.run())
    >>> key = ValkeyKey("queue")
    >>> await client.lpush(key, "a", "b")
    >>> (await client.lrange(key, 0, -1)).decode(list[str])
    ['b', 'a']
    >>> run_task.cancel()

Registry example:
    >>> from valkeywire import configure_client, get_client
    >>>
    >>> configure_client("cache", "hostname", host="localhost", database=1)
    >>> client = get_client("cache")
"""

from valkeywire.client import ValkeyClient
from valkeywire.commands import (
    ByBox,
    ByRadius,
    FromLonLat,
    FromMember,
    FunctionInfo,
    FunctionLibrary,
    GeoCoordinates,
    GeoMember,
    GeoOrder,
    GeoSearchEntry,
    GeoUnit,
    ListPopResult,
    ListWhere,
    ReplicaInfo,
    Role,
    ValkeyCommands,
)
from valkeywire.config import load_config
from valkeywire.connection import ConnectionState, ValkeyConnection
from valkeywire.core import CommandExecutor, ConnectionMetrics
from valkeywire.decoding import (
    AttributeView,
    ByteReader,
    WireCursor,
    WireDecodable,
    attributes_of,
    decode,
)
from valkeywire.domain.value_objects import (
    Array,
    Attribute,
    BigNumber,
    Boolean,
    BulkError,
    BulkString,
    Double,
    Error,
    Integer,
    Map,
    Null,
    Push,
    Set,
    SimpleString,
    ValkeyKey,
    VerbatimString,
    WireValue,
)
from valkeywire.exceptions import (
    ClientAlreadyConfiguredError,
    ClientNotFoundError,
    CommandTimeoutError,
    ConfigValidationError,
    DecodeError,
    ProtocolError,
    ServerError,
    ValkeyConnectionError,
    ValkeyError,
)
from valkeywire.pipeline import CommandPipeline, PendingRequest
from valkeywire.protocol import FrameDecoder, build_command, encode_command
from valkeywire.registry import configure_client, get_client, list_clients, remove_client
from valkeywire.schemas import (
    ClientConfiguration,
    ClientReadOnlyConfig,
    HostnameAddress,
    SentinelAddress,
    ServerAddress,
    UnixSocketAddress,
)

# Testing utilities
from valkeywire import testing

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Client and connection
    "ValkeyClient",
    "ValkeyConnection",
    "ConnectionState",
    "CommandExecutor",
    "ConnectionMetrics",
    "ValkeyCommands",
    # Addresses and configuration
    "HostnameAddress",
    "UnixSocketAddress",
    "SentinelAddress",
    "ServerAddress",
    "ClientConfiguration",
    "ClientReadOnlyConfig",
    "load_config",
    # Registry
    "configure_client",
    "get_client",
    "list_clients",
    "remove_client",
    # Wire values
    "WireValue",
    "Null",
    "Boolean",
    "Integer",
    "Double",
    "BigNumber",
    "SimpleString",
    "BulkString",
    "VerbatimString",
    "Error",
    "BulkError",
    "Array",
    "Set",
    "Map",
    "Push",
    "Attribute",
    "ValkeyKey",
    # Protocol
    "FrameDecoder",
    "build_command",
    "encode_command",
    "CommandPipeline",
    "PendingRequest",
    # Decoding
    "decode",
    "attributes_of",
    "AttributeView",
    "ByteReader",
    "WireCursor",
    "WireDecodable",
    # Command arguments and replies
    "ListWhere",
    "ListPopResult",
    "GeoUnit",
    "GeoOrder",
    "GeoMember",
    "FromMember",
    "FromLonLat",
    "ByRadius",
    "ByBox",
    "GeoCoordinates",
    "GeoSearchEntry",
    "FunctionInfo",
    "FunctionLibrary",
    "ReplicaInfo",
    "Role",
    # Testing utilities
    "testing",
    # Exceptions
    "ValkeyError",
    "ProtocolError",
    "ServerError",
    "DecodeError",
    "ValkeyConnectionError",
    "CommandTimeoutError",
    "ConfigValidationError",
    "ClientNotFoundError",
    "ClientAlreadyConfiguredError",
]

# Auto-load configuration from valkey-wire.toml if it exists
try:
    from valkeywire.config import _auto_load_config

    _auto_load_config()
except (FileNotFoundError, ValueError, OSError, ValkeyError):
    # Expected errors during auto-loading (missing file, invalid
    # configuration, file access issues) never prevent the import.
    # Clients can still be configured programmatically.
    pass
