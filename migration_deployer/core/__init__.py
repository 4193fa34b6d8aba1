"""Core components for Migration Deployer."""

from migration_deployer.core.errors import (
    ConfigurationError,
    IdleConditionError,
    MigrationDeployerError,
    MigrationRunnerError,
    NotificationError,
    NoUnappliedVersionsError,
    NoVersionsFoundError,
    ObjectExistsError,
    ObjectNotFoundError,
    OutcomeConflictError,
    StorageError,
    ValidationError,
    WaitCancelledError,
    WaitTimeoutError,
)
from migration_deployer.core.models import (
    Outcome,
    OutcomeStatus,
    PushInfo,
    PushSource,
    Version,
)
from migration_deployer.core.utils import format_rfc3339, normalize_prefix, utc_now

__all__ = [
    # Errors
    "MigrationDeployerError",
    "ConfigurationError",
    "ValidationError",
    "StorageError",
    "ObjectNotFoundError",
    "ObjectExistsError",
    "IdleConditionError",
    "NoVersionsFoundError",
    "NoUnappliedVersionsError",
    "OutcomeConflictError",
    "MigrationRunnerError",
    "NotificationError",
    "WaitTimeoutError",
    "WaitCancelledError",
    # Models
    "Version",
    "Outcome",
    "OutcomeStatus",
    "PushInfo",
    "PushSource",
    # Utilities
    "utc_now",
    "format_rfc3339",
    "normalize_prefix",
]
