"""Custom exceptions for Migration Deployer."""

from __future__ import annotations


class MigrationDeployerError(Exception):
    """Base exception for all migration deployer errors."""

    pass


class ConfigurationError(MigrationDeployerError):
    """Raised when configuration is invalid or incomplete."""

    pass


class ValidationError(MigrationDeployerError):
    """Raised when input validation fails.

    Covers malformed version identifiers and malformed migration files.
    Always raised before anything is written to storage.
    """

    pass


class StorageError(MigrationDeployerError):
    """Raised when an object store operation fails."""

    pass


class ObjectNotFoundError(StorageError):
    """Raised when a requested object does not exist."""

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Object not found: s3://{bucket}/{key}")


class ObjectExistsError(StorageError):
    """Raised when a create-if-absent write finds the key already present."""

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Object already exists: s3://{bucket}/{key}")


# =============================================================================
# Registry conditions
# =============================================================================


class IdleConditionError(MigrationDeployerError):
    """Base for expected "nothing to do" conditions.

    Callers treat these as success, not failure.
    """

    pass


class NoVersionsFoundError(IdleConditionError):
    """Raised when the prefix contains no version directories."""

    def __init__(self, bucket: str, prefix: str) -> None:
        self.bucket = bucket
        self.prefix = prefix
        super().__init__(f"No versions found under s3://{bucket}/{prefix}")


class NoUnappliedVersionsError(IdleConditionError):
    """Raised when the newest version already has an outcome."""

    def __init__(self, newest_version: str) -> None:
        self.newest_version = newest_version
        super().__init__(f"No unapplied versions (newest {newest_version} already applied)")


class OutcomeConflictError(MigrationDeployerError):
    """Raised when an exclusive outcome write loses to another writer.

    Only raised when outcome writes are configured as create-if-absent.
    """

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"Outcome for version {version} was already recorded by another run")


# =============================================================================
# Execution and notification
# =============================================================================


class MigrationRunnerError(MigrationDeployerError):
    """Raised by a migration runner when applying migrations fails."""

    def __init__(self, message: str, output: str = "") -> None:
        self.output = output
        super().__init__(message)


class NotificationError(MigrationDeployerError):
    """Raised when delivering a notification fails."""

    pass


# =============================================================================
# Waiter
# =============================================================================


class WaitTimeoutError(MigrationDeployerError):
    """Raised when the outcome does not appear before the deadline."""

    def __init__(self, version: str, timeout: float, attempts: int) -> None:
        self.version = version
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"Timeout waiting for outcome of version {version} after {timeout:g}s "
            f"(checked {attempts} times)"
        )


class WaitCancelledError(MigrationDeployerError):
    """Raised when waiting is interrupted by a cancellation signal."""

    def __init__(self, version: str, attempts: int) -> None:
        self.version = version
        self.attempts = attempts
        super().__init__(f"Wait for version {version} cancelled after {attempts} checks")
