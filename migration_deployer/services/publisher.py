"""Publish path: validates a local migration batch and uploads it as a version."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from migration_deployer.core.errors import ValidationError
from migration_deployer.core.models import PushInfo, Version
from migration_deployer.core.validation import (
    MIGRATION_SUFFIX,
    validate_migration_file,
    validate_migration_filename,
    validate_version,
)
from migration_deployer.ports.storage import ObjectStoreProtocol
from migration_deployer.services.registry import VersionRegistry

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Result of a publish (or a dry-run plan)."""

    version: Version
    bucket: str
    migration_keys: list[str] = field(default_factory=list)
    push_info_key: str | None = None
    dry_run: bool = False

    @property
    def file_count(self) -> int:
        return len(self.migration_keys)


def collect_migration_files(migrations_dir: Path) -> list[Path]:
    """Return the ``*.sql`` files directly inside ``migrations_dir``, sorted by name.

    Raises:
        ValidationError: If the directory is missing, unreadable or has no
            ``.sql`` files.
    """
    if not migrations_dir.is_dir():
        raise ValidationError(f"migrations directory does not exist: {migrations_dir}")
    try:
        files = sorted(
            (p for p in migrations_dir.iterdir() if p.is_file() and p.suffix == MIGRATION_SUFFIX),
            key=lambda p: p.name,
        )
    except OSError as e:
        raise ValidationError(f"failed to read migrations directory {migrations_dir}: {e}") from e
    if not files:
        raise ValidationError(f"no .sql files found in {migrations_dir}")
    return files


class Publisher:
    """Uploads a batch of migration files under a new version directory."""

    def __init__(self, store: ObjectStoreProtocol, bucket: str, prefix: str) -> None:
        self._registry = VersionRegistry(store, bucket, prefix)
        self._store = store
        self._bucket = bucket

    @property
    def registry(self) -> VersionRegistry:
        return self._registry

    def publish(
        self,
        version: str | Version,
        migrations_dir: Path,
        *,
        validate: bool = True,
        dry_run: bool = False,
        push_info: PushInfo | None = None,
    ) -> PublishResult:
        """Validate and upload a migration batch.

        All validation happens before the first write, so a rejected batch
        leaves the bucket untouched.

        Args:
            version: Version identifier (14 digits).
            migrations_dir: Local directory holding ``*.sql`` files.
            validate: Also check file contents for migration markers.
            dry_run: Plan the upload without writing anything.
            push_info: Provenance record to upload alongside the files.

        Returns:
            PublishResult listing the (planned or written) keys.

        Raises:
            ValidationError: If the version, file names or contents are
                invalid, or the version is already applied or superseded.
            StorageError: If a storage call fails.
        """
        parsed = validate_version(str(version))
        files = collect_migration_files(Path(migrations_dir))

        for path in files:
            if validate:
                validate_migration_file(path)
            else:
                validate_migration_filename(path.name)
        logger.info("Validated %d migration file(s) for version %s", len(files), parsed)

        self._check_publishable(parsed)

        result = PublishResult(
            version=parsed,
            bucket=self._bucket,
            migration_keys=[self._registry.migration_key(parsed, p.name) for p in files],
            push_info_key=self._registry.push_info_key(parsed) if push_info else None,
            dry_run=dry_run,
        )

        if dry_run:
            for key in result.migration_keys:
                logger.info("[dry-run] Would upload s3://%s/%s", self._bucket, key)
            if result.push_info_key:
                logger.info("[dry-run] Would upload s3://%s/%s", self._bucket, result.push_info_key)
            return result

        for path, key in zip(files, result.migration_keys):
            self._store.put(self._bucket, key, path.read_bytes(), content_type="application/sql")
            logger.info("Uploaded %s to s3://%s/%s", path.name, self._bucket, key)

        if push_info is not None:
            self._registry.record_push_info(parsed, push_info)

        logger.info("Published version %s (%d file(s))", parsed, result.file_count)
        return result

    def _check_publishable(self, version: Version) -> None:
        if self._registry.has_outcome(version):
            raise ValidationError(
                f"version {version} has already been applied (outcome exists); "
                "publish a new version instead"
            )

        newer = [v for v in self._registry.list_versions() if v > version]
        if newer:
            raise ValidationError(
                f"version {version} is older than existing version {newer[-1]} "
                "and would never be applied"
            )
