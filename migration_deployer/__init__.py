"""Migration Deployer - ship SQL migrations through an S3-compatible bucket."""

__version__ = "0.1.0"

# Re-export core components for convenience
from migration_deployer.config import Settings, get_settings
from migration_deployer.core import (
    ConfigurationError,
    MigrationDeployerError,
    Outcome,
    OutcomeStatus,
    PushInfo,
    StorageError,
    ValidationError,
    Version,
)

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "Version",
    "Outcome",
    "OutcomeStatus",
    "PushInfo",
    # Errors
    "MigrationDeployerError",
    "ConfigurationError",
    "StorageError",
    "ValidationError",
]
