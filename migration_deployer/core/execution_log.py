"""Timestamped transcript of one migration attempt."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from migration_deployer.core.utils import utc_now

logger = logging.getLogger(__name__)

LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class ExecutionLog:
    """Accumulates ``[YYYY-MM-DD HH:MM:SS UTC] message`` lines.

    Every line is mirrored to the module logger so the daemon's log stream
    carries the same milestones as the stored outcome.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._lines: list[str] = []

    def log(self, message: str, level: int = logging.INFO) -> None:
        stamp = self._clock().strftime(LOG_TIME_FORMAT)
        self._lines.append(f"[{stamp}] {message}\n")
        logger.log(level, message)

    def extend(self, output: str) -> None:
        """Append multi-line external output, one log line per non-empty line."""
        for line in output.splitlines():
            if line.strip():
                self.log(f"  {line.rstrip()}", level=logging.DEBUG)

    def __len__(self) -> int:
        return len(self._lines)

    def text(self) -> str:
        return "".join(self._lines)
