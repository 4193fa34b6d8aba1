"""Outcome waiter: blocks until a version's outcome appears, then notifies.

Used by CI after a push to learn whether the consumer applied the version.
Waiting is bounded by an overall deadline and interruptible through a
``threading.Event`` (set by the CLI's signal handlers).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from migration_deployer.core.errors import (
    NotificationError,
    StorageError,
    WaitCancelledError,
    WaitTimeoutError,
)
from migration_deployer.core.models import Outcome, Version
from migration_deployer.ports.notifier import NotifierProtocol
from migration_deployer.services.registry import VersionRegistry

logger = logging.getLogger(__name__)

DEFAULT_WAIT_POLL_INTERVAL = 5.0
DEFAULT_WAIT_TIMEOUT = 600.0
DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_FETCH_BACKOFF = 1.0


@dataclass
class NotificationResult:
    """Whether a notification was delivered, and why not if it wasn't."""

    sent: bool
    error: str = ""


@dataclass
class WaitReport:
    """Outcome of a wait, plus the notification delivery result if any."""

    version: Version
    outcome: Outcome
    notification: NotificationResult | None = None

    @property
    def succeeded(self) -> bool:
        """Mirror the migration status; notification failures don't count."""
        return self.outcome.succeeded


class OutcomeWaiter:
    """Polls the registry until an outcome exists for a version."""

    def __init__(
        self,
        registry: VersionRegistry,
        poll_interval: float = DEFAULT_WAIT_POLL_INTERVAL,
        timeout: float = DEFAULT_WAIT_TIMEOUT,
        fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS,
        fetch_backoff: float = DEFAULT_FETCH_BACKOFF,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the waiter.

        Args:
            registry: Version registry for the configured bucket/prefix.
            poll_interval: Seconds between existence checks.
            timeout: Overall deadline in seconds.
            fetch_attempts: Attempts to fetch the outcome once it exists.
            fetch_backoff: Base delay between fetch attempts (doubles).
            clock: Monotonic clock (injectable for tests).
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if fetch_attempts < 1:
            raise ValueError(f"fetch_attempts must be at least 1, got {fetch_attempts}")
        self._registry = registry
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._fetch_attempts = fetch_attempts
        self._fetch_backoff = fetch_backoff
        self._clock = clock

    def wait(self, version: Version, cancel_event: threading.Event | None = None) -> Outcome:
        """Wait for the outcome of ``version``.

        Performs one immediate check, then one check per poll interval until
        the deadline. Failed existence checks are logged and retried on the
        next tick.

        Args:
            version: Version to wait for.
            cancel_event: Set to abort the wait.

        Returns:
            The parsed outcome.

        Raises:
            WaitTimeoutError: If no outcome appears before the deadline.
            WaitCancelledError: If ``cancel_event`` is set.
            StorageError: If the outcome exists but cannot be fetched.
        """
        event = cancel_event if cancel_event is not None else threading.Event()
        deadline = self._clock() + self._timeout
        attempts = 0

        logger.info(
            "Waiting for outcome of version %s (timeout=%gs, poll_interval=%gs)",
            version,
            self._timeout,
            self._poll_interval,
        )

        if event.is_set():
            raise WaitCancelledError(str(version), attempts)

        attempts += 1
        if self._check(version, attempts):
            return self._fetch(version, event, deadline, attempts)

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise WaitTimeoutError(str(version), self._timeout, attempts)
            if event.wait(timeout=min(self._poll_interval, remaining)):
                raise WaitCancelledError(str(version), attempts)
            if self._clock() >= deadline:
                raise WaitTimeoutError(str(version), self._timeout, attempts)

            attempts += 1
            if self._check(version, attempts):
                return self._fetch(version, event, deadline, attempts)

    def _check(self, version: Version, attempt: int) -> bool:
        try:
            exists = self._registry.has_outcome(version)
        except StorageError as e:
            logger.warning("Outcome check %d for version %s failed: %s", attempt, version, e)
            return False
        if exists:
            logger.info("Outcome found for version %s after %d check(s)", version, attempt)
        else:
            logger.debug("Check %d: outcome for version %s not yet available", attempt, version)
        return exists

    def _fetch(
        self,
        version: Version,
        event: threading.Event,
        deadline: float,
        attempts: int,
    ) -> Outcome:
        last_error: StorageError | None = None
        for i in range(self._fetch_attempts):
            try:
                return self._registry.fetch_outcome(version)
            except StorageError as e:
                last_error = e
                logger.warning(
                    "Fetch attempt %d/%d for outcome of version %s failed: %s",
                    i + 1,
                    self._fetch_attempts,
                    version,
                    e,
                )
            if i == self._fetch_attempts - 1:
                break

            delay = self._fetch_backoff * (2**i)
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise WaitTimeoutError(str(version), self._timeout, attempts)
            if event.wait(timeout=min(delay, remaining)):
                raise WaitCancelledError(str(version), attempts)

        raise StorageError(
            f"Failed to fetch outcome for version {version} "
            f"after {self._fetch_attempts} attempts: {last_error}"
        ) from last_error


def wait_and_notify(
    waiter: OutcomeWaiter,
    version: Version,
    notifier: NotifierProtocol | None = None,
    cancel_event: threading.Event | None = None,
) -> WaitReport:
    """Wait for an outcome, then deliver a notification if configured.

    Notification failures are logged and reported in the result, never
    raised.

    Raises:
        WaitTimeoutError: If no outcome appears before the deadline.
        WaitCancelledError: If ``cancel_event`` is set.
        StorageError: If the outcome cannot be fetched.
    """
    outcome = waiter.wait(version, cancel_event)
    if outcome.succeeded:
        logger.info(
            "Migration for version %s succeeded (%d file(s) applied)",
            version,
            outcome.migrations_applied,
        )
    else:
        logger.error("Migration for version %s failed: %s", version, outcome.error)

    report = WaitReport(version=version, outcome=outcome)
    if notifier is None:
        return report

    try:
        notifier.send(str(version), outcome)
    except NotificationError as e:
        logger.warning("Failed to send notification for version %s: %s", version, e)
        report.notification = NotificationResult(sent=False, error=str(e))
    else:
        report.notification = NotificationResult(sent=True)
    return report
