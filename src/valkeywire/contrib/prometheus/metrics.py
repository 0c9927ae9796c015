"""Prometheus metrics definitions for valkey-wire.

This module defines all Prometheus metrics used by valkey-wire and provides
functions to record metric values. Metrics are created lazily on the first
call to enable_metrics(), so importing the library never touches the default
registry.

Metrics:
    valkeywire_commands_total: Counter of replies matched to a command
    valkeywire_command_duration_seconds: Histogram of write-to-reply latencies
    valkeywire_server_errors_total: Counter of error replies, by error kind
    valkeywire_push_messages_total: Counter of out-of-band push messages
    valkeywire_discarded_replies_total: Counter of replies nobody waited for
    valkeywire_connection_failures_total: Counter of failed connections
    valkeywire_reconnects_total: Counter of reconnections by the client run loop
    valkeywire_pending_requests: Gauge of requests waiting for a reply
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# Configurable settings
NAMESPACE = "valkeywire"

# Round trips to a nearby server are typically well below 100ms
COMMAND_LATENCY_BUCKETS = (
    0.0005,
    0.001,
    0.0025,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
)


class _MetricsState:
    """Encapsulates metrics state to avoid global variables."""

    def __init__(self) -> None:
        self.initialized: bool = False
        self.commands_total: Counter | None = None
        self.command_duration: Histogram | None = None
        self.server_errors_total: Counter | None = None
        self.push_messages_total: Counter | None = None
        self.discarded_replies_total: Counter | None = None
        self.connection_failures_total: Counter | None = None
        self.reconnects_total: Counter | None = None
        self.pending_requests: Gauge | None = None


_state = _MetricsState()


def is_enabled() -> bool:
    """Check if Prometheus metrics are enabled.

    Returns:
        True if metrics have been initialized and are being recorded.
    """
    return _state.initialized


def _init_metrics() -> None:
    """Initialize Prometheus metrics (lazy).

    This function is idempotent - calling it multiple times has no effect
    after the first successful initialization.
    """
    if _state.initialized:
        return

    _state.commands_total = Counter(
        f"{NAMESPACE}_commands_total",
        "Total number of replies matched to a command",
        ["client", "command"],
    )

    _state.command_duration = Histogram(
        f"{NAMESPACE}_command_duration_seconds",
        "Time between writing a command and receiving its reply",
        ["client", "command"],
        buckets=COMMAND_LATENCY_BUCKETS,
    )

    _state.server_errors_total = Counter(
        f"{NAMESPACE}_server_errors_total",
        "Total number of error replies",
        ["client", "kind"],
    )

    _state.push_messages_total = Counter(
        f"{NAMESPACE}_push_messages_total",
        "Total number of out-of-band push messages",
        ["client"],
    )

    _state.discarded_replies_total = Counter(
        f"{NAMESPACE}_discarded_replies_total",
        "Replies consumed for callers that stopped waiting",
        ["client"],
    )

    _state.connection_failures_total = Counter(
        f"{NAMESPACE}_connection_failures_total",
        "Connections that ended with an I/O or framing error",
        ["client"],
    )

    _state.reconnects_total = Counter(
        f"{NAMESPACE}_reconnects_total",
        "Connections re-established by the client run loop",
        ["client"],
    )

    _state.pending_requests = Gauge(
        f"{NAMESPACE}_pending_requests",
        "Requests written and still waiting for a reply",
        ["client"],
    )

    _state.initialized = True
    logger.info("Prometheus metrics initialized for valkey-wire")


def record_command(client: str, command: str, duration_seconds: float) -> None:
    """Record a reply matched to its command.

    Args:
        client: Client (or connection) name
        command: Command name (e.g., "GET", "LPUSH")
        duration_seconds: Time between write and reply, in seconds
    """
    if not _state.initialized:
        return
    if _state.commands_total is not None:
        _state.commands_total.labels(client=client, command=command).inc()
    if _state.command_duration is not None:
        _state.command_duration.labels(client=client, command=command).observe(duration_seconds)


def record_server_error(client: str, kind: str) -> None:
    """Record an error reply.

    Args:
        client: Client (or connection) name
        kind: Error kind, the leading uppercase word of the message (e.g., "WRONGTYPE")
    """
    if not _state.initialized:
        return
    if _state.server_errors_total is not None:
        _state.server_errors_total.labels(client=client, kind=kind).inc()


def record_push(client: str) -> None:
    """Record an out-of-band push message."""
    if not _state.initialized:
        return
    if _state.push_messages_total is not None:
        _state.push_messages_total.labels(client=client).inc()


def record_discarded_reply(client: str) -> None:
    """Record a reply consumed for a caller that stopped waiting."""
    if not _state.initialized:
        return
    if _state.discarded_replies_total is not None:
        _state.discarded_replies_total.labels(client=client).inc()


def record_connection_failure(client: str) -> None:
    """Record a connection that failed."""
    if not _state.initialized:
        return
    if _state.connection_failures_total is not None:
        _state.connection_failures_total.labels(client=client).inc()


def record_reconnect(client: str) -> None:
    """Record a reconnection."""
    if not _state.initialized:
        return
    if _state.reconnects_total is not None:
        _state.reconnects_total.labels(client=client).inc()


def set_pending_requests(client: str, count: int) -> None:
    """Set the number of requests waiting for a reply.

    Args:
        client: Client (or connection) name
        count: Current pipeline depth
    """
    if not _state.initialized:
        return
    if _state.pending_requests is not None:
        _state.pending_requests.labels(client=client).set(count)
