"""Migration executor: runs one version's migrations and produces an Outcome.

Every failure during an attempt (workspace, download, empty set, bad
connection string, runner error) ends up inside a ``failed`` Outcome instead
of propagating, so the caller can always persist exactly one record for the
attempt.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from urllib.parse import urlsplit

from migration_deployer.core.errors import MigrationRunnerError, StorageError
from migration_deployer.core.execution_log import ExecutionLog
from migration_deployer.core.models import Outcome, Version
from migration_deployer.core.utils import format_rfc3339, join_key, normalize_prefix, utc_now
from migration_deployer.core.validation import MIGRATION_SUFFIX
from migration_deployer.ports.runner import MigrationRunnerProtocol
from migration_deployer.ports.storage import ObjectStoreProtocol

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = "migrations-"


class ExecutionFailure(Exception):
    """Terminal failure of one attempt; converted into a failed Outcome."""

    def __init__(self, error: str, log_message: str | None = None) -> None:
        self.error = error
        self.log_message = log_message
        super().__init__(error)


def check_database_url(database_url: str) -> None:
    """Reject connection strings without a scheme or location.

    Messages never include the URL itself since it carries credentials.

    Raises:
        ValueError: If the URL is malformed.
    """
    if not database_url or not database_url.strip():
        raise ValueError("connection string is empty")
    parts = urlsplit(database_url)
    if not parts.scheme:
        raise ValueError("missing scheme (expected e.g. postgres://...)")
    if not parts.netloc and not parts.path:
        raise ValueError(f"missing host or path for scheme '{parts.scheme}'")
    # Accessing .port validates the port number.
    _ = parts.port


class MigrationExecutor:
    """Materializes a version's migrations and hands them to the runner."""

    def __init__(
        self,
        store: ObjectStoreProtocol,
        runner: MigrationRunnerProtocol,
        clock: Callable[[], datetime] = utc_now,
        workdir_root: Path | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            store: Object store adapter to download migration files from.
            runner: External migration runner.
            clock: UTC clock (injectable for tests).
            workdir_root: Parent directory for the transient working area
                (system temp dir when None).
        """
        self._store = store
        self._runner = runner
        self._clock = clock
        self._workdir_root = workdir_root

    def execute(
        self,
        bucket: str,
        prefix: str,
        version: Version,
        database_url: str,
    ) -> Outcome:
        """Run one migration attempt.

        Args:
            bucket: Bucket holding the version directory.
            prefix: Storage prefix of the version directories.
            version: Version to apply.
            database_url: Target database connection string.

        Returns:
            Outcome with status ``success`` or ``failed``. Never raises for
            attempt failures.
        """
        timestamp = format_rfc3339(self._clock())
        log = ExecutionLog(clock=self._clock)
        log.log("=== Starting database migration ===")
        log.log(f"Version: {version}")

        try:
            workdir = Path(tempfile.mkdtemp(prefix=WORKDIR_PREFIX, dir=self._workdir_root))
        except OSError as e:
            log.log(f"✗ Failed to create temp directory: {e}", level=logging.ERROR)
            return Outcome.failure(
                str(version), f"Failed to create temp directory: {e}", log.text(), timestamp
            )

        try:
            count = self._run(bucket, normalize_prefix(prefix), version, database_url, workdir, log)
        except ExecutionFailure as failure:
            log.log(f"✗ {failure.log_message or failure.error}", level=logging.ERROR)
            return Outcome.failure(str(version), failure.error, log.text(), timestamp)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        log.log("✓ Migration completed successfully")
        return Outcome.success(str(version), count, log.text(), timestamp)

    def _run(
        self,
        bucket: str,
        prefix: str,
        version: Version,
        database_url: str,
        workdir: Path,
        log: ExecutionLog,
    ) -> int:
        migrations_prefix = join_key(prefix, str(version), "migrations") + "/"
        log.log(f"Downloading migrations from s3://{bucket}/{migrations_prefix}")
        try:
            downloaded = self._download(bucket, migrations_prefix, workdir)
        except StorageError as e:
            raise ExecutionFailure(f"Failed to download migrations: {e}") from e
        except OSError as e:
            raise ExecutionFailure(f"Failed to write migration file: {e}") from e
        logger.debug("Downloaded %d object(s) into %s", downloaded, workdir)

        try:
            migration_files = sorted(
                p.name for p in workdir.iterdir() if p.is_file() and p.suffix == MIGRATION_SUFFIX
            )
        except OSError as e:
            raise ExecutionFailure(f"Failed to read migrations directory: {e}") from e

        if not migration_files:
            raise ExecutionFailure(f"No migration files found for version {version}")
        log.log(f"Downloaded {len(migration_files)} migration files")

        try:
            check_database_url(database_url)
        except ValueError as e:
            raise ExecutionFailure(
                f"Invalid DATABASE_URL: {e}", f"Failed to parse DATABASE_URL: {e}"
            ) from e

        log.log("Running dbmate up...")
        try:
            result = self._runner.apply(workdir, database_url)
        except MigrationRunnerError as e:
            log.extend(e.output)
            raise ExecutionFailure(
                f"Migration runner failed: {e}", f"Migration failed: {e}"
            ) from e
        except Exception as e:
            logger.error("Unexpected error from migration runner", exc_info=True)
            raise ExecutionFailure(
                f"Migration runner failed: {e}", f"Migration failed: {e}"
            ) from e
        log.extend(result.output)
        return len(migration_files)

    def _download(self, bucket: str, migrations_prefix: str, workdir: Path) -> int:
        count = 0
        for key in self._store.list_keys(bucket, migrations_prefix):
            if key.endswith("/"):
                continue
            file_name = key.rsplit("/", 1)[-1]
            if file_name in ("", ".", ".."):
                continue
            body = self._store.get(bucket, key)
            (workdir / file_name).write_bytes(body)
            count += 1
        return count
