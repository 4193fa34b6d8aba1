"""Protocol interface for the metrics sink.

Components receive a sink explicitly instead of touching module-level
collectors, so tests can assert on an isolated instance.
"""

from __future__ import annotations

from typing import Protocol


class MetricsSinkProtocol(Protocol):
    """Records migration attempt metrics."""

    def record_attempt(self, status: str) -> None:
        """Count one attempt labelled by outcome status."""
        ...

    def record_duration(self, seconds: float) -> None:
        """Observe the duration of one attempt."""
        ...

    def record_last_migration_timestamp(self, timestamp: float) -> None:
        """Set the unix time of the last attempt."""
        ...

    def record_current_version(self, version: str) -> None:
        """Mark ``version`` as the currently applied version."""
        ...
