"""Migration driver: the consumer's check-execute-record cycle.

One tick walks Checking -> Executing -> Recording and returns to Idle.
``run_forever`` repeats ticks on a fixed wall-clock interval until a stop
event is set. No state is carried across ticks; the bucket is re-read every
time.

Lifecycle:
- run_once(): a single tick; storage errors propagate
- run_forever(stop_event): immediate tick, then one per interval, with
  per-tick errors logged and swallowed
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from migration_deployer.core.errors import (
    NoUnappliedVersionsError,
    NoVersionsFoundError,
    OutcomeConflictError,
)
from migration_deployer.core.models import Outcome, Version
from migration_deployer.ports.metrics import MetricsSinkProtocol
from migration_deployer.services.executor import MigrationExecutor
from migration_deployer.services.registry import VersionRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0


class TickStatus(str, Enum):
    """How a single tick ended."""

    NO_VERSIONS = "no_versions"
    UP_TO_DATE = "up_to_date"
    APPLIED = "applied"
    FAILED = "failed"
    CONFLICT = "conflict"

    @property
    def is_failure(self) -> bool:
        return self in (TickStatus.FAILED, TickStatus.CONFLICT)


@dataclass
class TickResult:
    """Result of one driver tick."""

    status: TickStatus
    version: Version | None = None
    outcome: Outcome | None = None
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return not self.status.is_failure


class MigrationDriver:
    """Finds the newest unapplied version, executes it and records the outcome."""

    def __init__(
        self,
        registry: VersionRegistry,
        executor: MigrationExecutor,
        database_url: str,
        metrics: MetricsSinkProtocol | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        exclusive_outcome: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the driver.

        Args:
            registry: Version registry for the configured bucket/prefix.
            executor: Migration executor.
            database_url: Target database connection string.
            metrics: Metrics sink (nothing is recorded when None).
            poll_interval: Seconds between ticks in ``run_forever``.
            exclusive_outcome: Write outcomes create-if-absent.
            clock: Monotonic clock used to align ticks (injectable for tests).
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self._registry = registry
        self._executor = executor
        self._database_url = database_url
        self._metrics = metrics
        self._poll_interval = poll_interval
        self._exclusive_outcome = exclusive_outcome
        self._clock = clock

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    def run_once(self) -> TickResult:
        """Run one check-execute-record cycle.

        Returns:
            TickResult describing how the tick ended. Idle conditions (no
            versions, newest already applied) are successful results.

        Raises:
            StorageError: If listing, checking or recording fails.
        """
        logger.debug("Checking for unapplied versions")
        try:
            version = self._registry.find_next_version()
        except NoVersionsFoundError as e:
            logger.info("%s", e)
            return TickResult(TickStatus.NO_VERSIONS, message=str(e))
        except NoUnappliedVersionsError as e:
            logger.info("Newest version %s already applied, nothing to do", e.newest_version)
            return TickResult(
                TickStatus.UP_TO_DATE, version=Version(e.newest_version), message=str(e)
            )

        logger.info("Executing migrations for version %s", version)
        started = time.monotonic()
        outcome = self._executor.execute(
            self._registry.bucket, self._registry.prefix, version, self._database_url
        )
        duration = time.monotonic() - started
        self._record_metrics(version, outcome, duration)

        if outcome.succeeded:
            logger.info(
                "Migration succeeded for version %s (%d file(s), %.2fs)",
                version,
                outcome.migrations_applied,
                duration,
            )
        else:
            logger.error("Migration failed for version %s: %s", version, outcome.error)

        logger.debug("Recording outcome for version %s", version)
        try:
            self._registry.record_outcome(version, outcome, exclusive=self._exclusive_outcome)
        except OutcomeConflictError as e:
            logger.warning("%s; keeping the existing record", e)
            return TickResult(TickStatus.CONFLICT, version=version, outcome=outcome, message=str(e))

        status = TickStatus.APPLIED if outcome.succeeded else TickStatus.FAILED
        return TickResult(status, version=version, outcome=outcome, message=outcome.error)

    def run_forever(self, stop_event: threading.Event) -> None:
        """Tick immediately, then on every interval until ``stop_event`` is set.

        Ticks are aligned to ``start + n * poll_interval``; a tick that
        overruns its slot causes the missed slots to be skipped.
        """
        logger.info("Driver started (poll_interval=%gs)", self._poll_interval)
        start = self._clock()
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.error("Error during migration check", exc_info=True)

            elapsed = self._clock() - start
            next_slot = (int(elapsed // self._poll_interval) + 1) * self._poll_interval
            if stop_event.wait(timeout=next_slot - elapsed):
                break
        logger.info("Driver stopped")

    def _record_metrics(self, version: Version, outcome: Outcome, duration: float) -> None:
        if self._metrics is None:
            return
        self._metrics.record_duration(duration)
        self._metrics.record_last_migration_timestamp(time.time())
        self._metrics.record_attempt(outcome.status.value)
        if outcome.succeeded:
            self._metrics.record_current_version(str(version))
