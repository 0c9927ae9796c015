"""Prometheus metrics integration for valkey-wire.

This module provides Prometheus metrics collection for connections and clients.

Usage:
    from valkeywire.contrib.prometheus import enable_metrics

    # Enable metrics collection (call once at startup)
    enable_metrics()

    # Metrics are automatically recorded by every connection
    # They appear in the default Prometheus registry
"""

from valkeywire.contrib.prometheus.metrics import _init_metrics, is_enabled


def enable_metrics() -> bool:
    """Enable Prometheus metrics collection.

    This function initializes the Prometheus metrics. It should be called
    once at application startup; later calls have no effect.

    Returns:
        True once metrics are being recorded.

    Example:
        >>> from valkeywire.contrib.prometheus import enable_metrics
        >>> enable_metrics()
        True
    """
    _init_metrics()
    return is_enabled()


__all__ = ["enable_metrics", "is_enabled"]
