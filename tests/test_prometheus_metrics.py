"""Tests for Prometheus metrics integration.

These tests verify that Prometheus metrics are recorded by connections and
clients once enable_metrics() was called. Metric state is global in
prometheus-client, so every test records under its own client label.
"""

import asyncio
import uuid

import pytest
from prometheus_client import REGISTRY

from valkeywire import ServerError, ValkeyConnection
from valkeywire.contrib.prometheus import enable_metrics
from valkeywire.contrib.prometheus.metrics import (
    NAMESPACE,
    is_enabled,
    record_command,
    record_discarded_reply,
    record_push,
    record_reconnect,
    record_server_error,
    set_pending_requests,
)


def sample(name: str, **labels: str) -> float:
    """Current value of a sample (0.0 if the label set was never used)."""
    return REGISTRY.get_sample_value(f"{NAMESPACE}_{name}", labels) or 0.0


@pytest.fixture
def client_label() -> str:
    return f"metrics-{uuid.uuid4().hex[:8]}"


@pytest.fixture(autouse=True)
def metrics_enabled():
    """Enable metrics once; later calls are no-ops."""
    enable_metrics()
    yield


class TestEnableMetrics:
    """Test metric initialization."""

    def test_enable_metrics_returns_true(self):
        assert enable_metrics() is True

    def test_is_enabled_after_enable(self):
        assert is_enabled() is True

    def test_enable_is_idempotent(self):
        """Test that a second call does not register the collectors again."""
        enable_metrics()
        enable_metrics()
        assert is_enabled()


class TestRecorders:
    """Test the recording functions directly."""

    def test_record_command(self, client_label):
        record_command(client_label, "GET", 0.002)
        record_command(client_label, "GET", 0.004)

        assert sample("commands_total", client=client_label, command="GET") == 2
        assert sample("command_duration_seconds_count", client=client_label, command="GET") == 2
        assert sample(
            "command_duration_seconds_sum", client=client_label, command="GET"
        ) == pytest.approx(0.006)

    def test_record_server_error(self, client_label):
        record_server_error(client_label, "WRONGTYPE")
        assert sample("server_errors_total", client=client_label, kind="WRONGTYPE") == 1

    def test_counters(self, client_label):
        record_push(client_label)
        record_discarded_reply(client_label)
        record_reconnect(client_label)

        assert sample("push_messages_total", client=client_label) == 1
        assert sample("discarded_replies_total", client=client_label) == 1
        assert sample("reconnects_total", client=client_label) == 1

    def test_pending_gauge(self, client_label):
        set_pending_requests(client_label, 7)
        assert sample("pending_requests", client=client_label) == 7
        set_pending_requests(client_label, 0)
        assert sample("pending_requests", client=client_label) == 0


class TestConnectionMetrics:
    """Test that a live connection feeds the metrics."""

    @pytest.mark.asyncio
    async def test_commands_and_errors(self, scripted_server, resp2_config, client_label):
        scripted_server.handler = lambda command: (
            b"-WRONGTYPE wrong kind\r\n" if command[0] == b"LLEN" else b"+PONG\r\n"
        )
        connection = await ValkeyConnection.connect(
            scripted_server.address, resp2_config, name=client_label
        )
        loop_task = asyncio.create_task(connection.run())
        try:
            await connection.ping()
            with pytest.raises(ServerError):
                await connection.llen("k")
        finally:
            loop_task.cancel()
            await asyncio.gather(loop_task, return_exceptions=True)

        assert sample("commands_total", client=client_label, command="PING") == 1
        assert sample("commands_total", client=client_label, command="LLEN") == 1
        assert sample("server_errors_total", client=client_label, kind="WRONGTYPE") == 1
        assert sample("pending_requests", client=client_label) == 0
