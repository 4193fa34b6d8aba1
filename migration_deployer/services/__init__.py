"""Service layer for Migration Deployer."""

from migration_deployer.services.driver import MigrationDriver, TickResult, TickStatus
from migration_deployer.services.executor import MigrationExecutor
from migration_deployer.services.publisher import Publisher, PublishResult
from migration_deployer.services.registry import VersionRegistry
from migration_deployer.services.waiter import (
    NotificationResult,
    OutcomeWaiter,
    WaitReport,
    wait_and_notify,
)

__all__ = [
    "MigrationDriver",
    "MigrationExecutor",
    "NotificationResult",
    "OutcomeWaiter",
    "PublishResult",
    "Publisher",
    "TickResult",
    "TickStatus",
    "VersionRegistry",
    "WaitReport",
    "wait_and_notify",
]
