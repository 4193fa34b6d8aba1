"""Port interfaces for Migration Deployer."""

from migration_deployer.ports.metrics import MetricsSinkProtocol
from migration_deployer.ports.notifier import NotifierProtocol
from migration_deployer.ports.runner import MigrationRunnerProtocol, RunnerResult
from migration_deployer.ports.storage import ObjectStoreProtocol

__all__ = [
    "MetricsSinkProtocol",
    "MigrationRunnerProtocol",
    "NotifierProtocol",
    "ObjectStoreProtocol",
    "RunnerResult",
]
