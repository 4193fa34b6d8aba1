"""Version registry: interprets the bucket layout as an ordered set of versions.

Layout under a normalized prefix::

    <prefix><version>/migrations/<timestamp>_<description>.sql
    <prefix><version>/push-info
    <prefix><version>/outcome

The outcome object's existence is the applied-marker. Only the newest
version is ever considered for execution; migration sets are cumulative, so
applying the newest one covers everything older.
"""

from __future__ import annotations

import logging

from migration_deployer.core.errors import (
    NoUnappliedVersionsError,
    NoVersionsFoundError,
    ObjectExistsError,
    OutcomeConflictError,
    StorageError,
)
from migration_deployer.core.models import Outcome, PushInfo, Version, is_version_string
from migration_deployer.core.utils import join_key, normalize_prefix
from migration_deployer.ports.storage import ObjectStoreProtocol

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = "migrations"
OUTCOME_OBJECT = "outcome"
PUSH_INFO_OBJECT = "push-info"
JSON_CONTENT_TYPE = "application/json"


class VersionRegistry:
    """Answers "what is next?" and "is V done?" and records completion.

    Stateless apart from its configuration: every call re-reads storage.
    """

    def __init__(self, store: ObjectStoreProtocol, bucket: str, prefix: str) -> None:
        """Initialize the registry.

        Args:
            store: Object store adapter.
            bucket: Bucket holding the version directories.
            prefix: Path prefix; normalized to end with ``/``.
        """
        self._store = store
        self._bucket = bucket
        self._prefix = normalize_prefix(prefix)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def store(self) -> ObjectStoreProtocol:
        return self._store

    # =========================================================================
    # Keys
    # =========================================================================

    def migrations_prefix(self, version: Version) -> str:
        return join_key(self._prefix, str(version), MIGRATIONS_DIR) + "/"

    def migration_key(self, version: Version, file_name: str) -> str:
        return join_key(self._prefix, str(version), MIGRATIONS_DIR, file_name)

    def outcome_key(self, version: Version) -> str:
        return join_key(self._prefix, str(version), OUTCOME_OBJECT)

    def push_info_key(self, version: Version) -> str:
        return join_key(self._prefix, str(version), PUSH_INFO_OBJECT)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_versions(self) -> list[Version]:
        """List version directories directly under the prefix.

        Child names that are not 14-digit versions are ignored.

        Returns:
            Versions in ascending order (empty if there are none).

        Raises:
            StorageError: If the list call fails.
        """
        logger.info("Listing versions from s3://%s/%s", self._bucket, self._prefix)
        versions: list[Version] = []
        for child in self._store.list_prefixes(self._bucket, self._prefix):
            name = child[len(self._prefix):] if child.startswith(self._prefix) else child
            name = name.rstrip("/")
            if not is_version_string(name):
                logger.debug("Ignoring non-version entry %r under %s", name, self._prefix)
                continue
            versions.append(Version(name))

        versions.sort()
        logger.info(
            "Found %d version(s): %s", len(versions), ", ".join(str(v) for v in versions)
        )
        return versions

    def has_outcome(self, version: Version) -> bool:
        """Check whether the outcome record exists (metadata only).

        Raises:
            StorageError: For failures other than not-found.
        """
        return self._store.head(self._bucket, self.outcome_key(version))

    def find_next_version(self) -> Version:
        """Return the newest version if it has not been applied yet.

        Raises:
            NoVersionsFoundError: If the prefix contains no versions.
            NoUnappliedVersionsError: If the newest version has an outcome,
                even when older versions lack one.
            StorageError: If storage access fails.
        """
        versions = self.list_versions()
        if not versions:
            raise NoVersionsFoundError(self._bucket, self._prefix)

        newest = versions[-1]
        try:
            applied = self.has_outcome(newest)
        except StorageError as e:
            raise StorageError(
                f"Failed to check outcome for newest version {newest}: {e}"
            ) from e

        if applied:
            logger.info("Newest version %s already applied (outcome exists)", newest)
            raise NoUnappliedVersionsError(str(newest))

        logger.info("Found unapplied newest version %s", newest)
        return newest

    # =========================================================================
    # Outcome records
    # =========================================================================

    def record_outcome(
        self, version: Version, outcome: Outcome, *, exclusive: bool = False
    ) -> None:
        """Write the outcome record.

        Args:
            version: Version the outcome belongs to.
            outcome: Outcome to store.
            exclusive: Create-if-absent instead of last-writer-wins.

        Raises:
            OutcomeConflictError: If ``exclusive`` and another run already
                recorded an outcome.
            StorageError: If the write fails.
        """
        key = self.outcome_key(version)
        try:
            self._store.put(
                self._bucket,
                key,
                outcome.to_json().encode("utf-8"),
                content_type=JSON_CONTENT_TYPE,
                if_none_match=exclusive,
            )
        except ObjectExistsError as e:
            raise OutcomeConflictError(str(version)) from e
        logger.info(
            "Outcome recorded at s3://%s/%s (status=%s)", self._bucket, key, outcome.status.value
        )

    def fetch_outcome(self, version: Version) -> Outcome:
        """Fetch and parse the outcome record.

        Raises:
            ObjectNotFoundError: If no outcome exists yet.
            StorageError: If the read fails or the record is malformed.
        """
        raw = self._store.get(self._bucket, self.outcome_key(version))
        try:
            outcome = Outcome.from_json(raw)
        except ValueError as e:
            raise StorageError(f"Malformed outcome record for version {version}: {e}") from e
        logger.info("Fetched outcome for version %s (status=%s)", version, outcome.status.value)
        return outcome

    # =========================================================================
    # Push info
    # =========================================================================

    def record_push_info(self, version: Version, push_info: PushInfo) -> None:
        key = self.push_info_key(version)
        self._store.put(
            self._bucket,
            key,
            push_info.to_json().encode("utf-8"),
            content_type=JSON_CONTENT_TYPE,
        )
        logger.info("Push info recorded at s3://%s/%s", self._bucket, key)

    def fetch_push_info(self, version: Version) -> PushInfo | None:
        """Fetch the provenance record, or None when it was never written."""
        key = self.push_info_key(version)
        if not self._store.head(self._bucket, key):
            return None
        raw = self._store.get(self._bucket, key)
        try:
            return PushInfo.from_json(raw)
        except ValueError as e:
            raise StorageError(f"Malformed push info for version {version}: {e}") from e
