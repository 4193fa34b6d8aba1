"""Protocol interface for outcome notifications."""

from __future__ import annotations

from typing import Protocol

from migration_deployer.core.models import Outcome


class NotifierProtocol(Protocol):
    """Delivers a summary of an outcome to an external channel."""

    def send(self, version: str, outcome: Outcome) -> None:
        """Deliver a notification.

        Raises:
            NotificationError: If delivery fails.
        """
        ...
