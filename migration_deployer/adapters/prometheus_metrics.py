"""Prometheus metrics sink.

Each PrometheusMetrics owns its own CollectorRegistry rather than the
global default one, so independent instances never collide.
"""

from __future__ import annotations

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)


def parse_listen_address(addr: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``:port``) into a bind address and port.

    Raises:
        ValueError: If the port is missing or not a number.
    """
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid metrics address (expected host:port or :port): {addr!r}")
    return host.strip("[]") or "0.0.0.0", int(port)


class PrometheusMetrics:
    """Metrics sink backed by prometheus_client."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.attempts = Counter(
            "dbmate_migration_attempts",
            "Total number of migration attempts",
            ["status"],
            registry=self.registry,
        )
        self.duration = Histogram(
            "dbmate_migration_duration_seconds",
            "Duration of migration execution in seconds",
            registry=self.registry,
        )
        self.last_timestamp = Gauge(
            "dbmate_last_migration_timestamp",
            "Timestamp of the last migration (unix seconds)",
            registry=self.registry,
        )
        self.current_version = Gauge(
            "dbmate_current_version",
            "Current migration version (labeled by version)",
            ["version"],
            registry=self.registry,
        )
        # Prime the status labels so they appear before the first attempt
        self.attempts.labels(status="success").inc(0)
        self.attempts.labels(status="failed").inc(0)

    def record_attempt(self, status: str) -> None:
        self.attempts.labels(status=status).inc()

    def record_duration(self, seconds: float) -> None:
        self.duration.observe(seconds)

    def record_last_migration_timestamp(self, timestamp: float) -> None:
        self.last_timestamp.set(timestamp)

    def record_current_version(self, version: str) -> None:
        self.current_version.clear()
        self.current_version.labels(version=version).set(1)

    def start_server(self, addr: str) -> None:
        """Serve ``/metrics`` on a background daemon thread."""
        host, port = parse_listen_address(addr)
        start_http_server(port, addr=host, registry=self.registry)
        logger.info("Metrics server listening on %s:%d", host, port)


class NullMetrics:
    """Metrics sink that records nothing."""

    def record_attempt(self, status: str) -> None:
        pass

    def record_duration(self, seconds: float) -> None:
        pass

    def record_last_migration_timestamp(self, timestamp: float) -> None:
        pass

    def record_current_version(self, version: str) -> None:
        pass
