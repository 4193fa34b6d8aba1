"""Unit tests for the version registry."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from migration_deployer.core.errors import (
    NoUnappliedVersionsError,
    NoVersionsFoundError,
    ObjectNotFoundError,
    OutcomeConflictError,
    StorageError,
)
from migration_deployer.core.models import Outcome, PushInfo, PushSource, Version
from migration_deployer.services.registry import VersionRegistry
from tests.fakes import InMemoryObjectStore

BUCKET = "test-bucket"
PREFIX = "migrations/"


def success_outcome(version: str) -> Outcome:
    return Outcome.success(version, 1, "[ts] done\n", "2024-01-01T00:00:00Z")


@pytest.mark.unit
class TestFindNextVersion:
    """Tests for newest-only version selection."""

    def test_returns_newest_unapplied_version(
        self, registry: VersionRegistry, add_version: Callable[..., Version]
    ) -> None:
        """Two unapplied versions: the newest one wins."""
        add_version("20240101000000")
        add_version("20240102000000")
        assert registry.find_next_version() == Version("20240102000000")

    def test_only_version_applied_is_up_to_date(
        self, registry: VersionRegistry, add_version: Callable[..., Version]
    ) -> None:
        """The single version has a success outcome: nothing to do."""
        add_version("20240101000000", outcome=success_outcome("20240101000000"))
        with pytest.raises(NoUnappliedVersionsError) as exc_info:
            registry.find_next_version()
        assert exc_info.value.newest_version == "20240101000000"

    def test_older_unapplied_versions_are_abandoned(
        self, registry: VersionRegistry, add_version: Callable[..., Version]
    ) -> None:
        add_version("20240101000000")
        add_version("20240102000000", outcome=success_outcome("20240102000000"))
        with pytest.raises(NoUnappliedVersionsError):
            registry.find_next_version()

    def test_failed_outcome_still_counts_as_applied(
        self, registry: VersionRegistry, add_version: Callable[..., Version]
    ) -> None:
        failed = Outcome.failure("20240101000000", "boom", "", "2024-01-01T00:00:00Z")
        add_version("20240101000000", outcome=failed)
        with pytest.raises(NoUnappliedVersionsError):
            registry.find_next_version()

    def test_empty_prefix_has_no_versions(self, registry: VersionRegistry) -> None:
        with pytest.raises(NoVersionsFoundError):
            registry.find_next_version()

    def test_non_version_entries_are_ignored(
        self,
        store: InMemoryObjectStore,
        registry: VersionRegistry,
        add_version: Callable[..., Version],
    ) -> None:
        store.add(BUCKET, f"{PREFIX}README/notes.txt", "hello")
        store.add(BUCKET, f"{PREFIX}2024010100000/migrations/x.sql", "short version")
        store.add(BUCKET, f"{PREFIX}latest/outcome", "{}")
        add_version("20240101000000")
        assert registry.list_versions() == [Version("20240101000000")]
        assert registry.find_next_version() == Version("20240101000000")

    def test_only_non_version_entries_means_no_versions(
        self, store: InMemoryObjectStore, registry: VersionRegistry
    ) -> None:
        store.add(BUCKET, f"{PREFIX}tmp/file", "x")
        with pytest.raises(NoVersionsFoundError):
            registry.find_next_version()

    def test_checks_only_the_newest_outcome(
        self,
        store: InMemoryObjectStore,
        registry: VersionRegistry,
        add_version: Callable[..., Version],
    ) -> None:
        for v in ("20240101000000", "20240102000000", "20240103000000"):
            add_version(v)
        registry.find_next_version()
        heads = [key for op, key in store.calls if op == "head"]
        assert heads == [f"{PREFIX}20240103000000/outcome"]

    def test_list_failure_propagates(
        self, store: InMemoryObjectStore, registry: VersionRegistry
    ) -> None:
        store.fail_next("list_prefixes", StorageError("access denied"))
        with pytest.raises(StorageError, match="access denied"):
            registry.find_next_version()

    def test_head_failure_is_wrapped(
        self,
        store: InMemoryObjectStore,
        registry: VersionRegistry,
        add_version: Callable[..., Version],
    ) -> None:
        add_version("20240101000000")
        store.fail_next("head", StorageError("throttled"))
        with pytest.raises(StorageError, match="Failed to check outcome for newest version"):
            registry.find_next_version()

    def test_empty_prefix_lists_bucket_root(self, store: InMemoryObjectStore) -> None:
        registry = VersionRegistry(store, BUCKET, "")
        store.add(BUCKET, "20240101000000/migrations/20240101000000_a.sql", "-- migrate:up")
        assert registry.find_next_version() == Version("20240101000000")

    def test_prefix_without_trailing_slash_is_normalized(self, store: InMemoryObjectStore) -> None:
        registry = VersionRegistry(store, BUCKET, "migrations")
        assert registry.prefix == "migrations/"
        assert registry.outcome_key(Version("20240101000000")) == (
            "migrations/20240101000000/outcome"
        )


@pytest.mark.unit
class TestOutcomeRecords:
    """Tests for writing and reading outcome records."""

    def test_record_then_has_outcome(self, registry: VersionRegistry) -> None:
        version = Version("20240101000000")
        assert not registry.has_outcome(version)
        registry.record_outcome(version, success_outcome(str(version)))
        assert registry.has_outcome(version)

    def test_failed_outcome_also_marks_applied(self, registry: VersionRegistry) -> None:
        version = Version("20240101000000")
        registry.record_outcome(
            version, Outcome.failure(str(version), "boom", "", "2024-01-01T00:00:00Z")
        )
        assert registry.has_outcome(version)

    def test_record_writes_json_content_type(
        self, store: InMemoryObjectStore, registry: VersionRegistry
    ) -> None:
        version = Version("20240101000000")
        registry.record_outcome(version, success_outcome(str(version)))
        key = (BUCKET, f"{PREFIX}20240101000000/outcome")
        assert store.content_types[key] == "application/json"

    def test_last_writer_wins_by_default(self, registry: VersionRegistry) -> None:
        version = Version("20240101000000")
        registry.record_outcome(version, success_outcome(str(version)))
        registry.record_outcome(
            version, Outcome.failure(str(version), "second", "", "2024-01-01T00:00:01Z")
        )
        assert registry.fetch_outcome(version).error == "second"

    def test_exclusive_write_conflict(self, registry: VersionRegistry) -> None:
        version = Version("20240101000000")
        registry.record_outcome(version, success_outcome(str(version)), exclusive=True)
        with pytest.raises(OutcomeConflictError) as exc_info:
            registry.record_outcome(version, success_outcome(str(version)), exclusive=True)
        assert exc_info.value.version == "20240101000000"

    def test_fetch_round_trip(self, registry: VersionRegistry) -> None:
        version = Version("20240101000000")
        outcome = success_outcome(str(version))
        registry.record_outcome(version, outcome)
        fetched = registry.fetch_outcome(version)
        assert fetched.version == outcome.version
        assert fetched.status == outcome.status
        assert fetched.log == outcome.log

    def test_fetch_missing_raises_not_found(self, registry: VersionRegistry) -> None:
        with pytest.raises(ObjectNotFoundError):
            registry.fetch_outcome(Version("20240101000000"))

    def test_fetch_malformed_raises_storage_error(
        self, store: InMemoryObjectStore, registry: VersionRegistry
    ) -> None:
        store.add(BUCKET, f"{PREFIX}20240101000000/outcome", "{not json")
        with pytest.raises(StorageError, match="Malformed outcome record"):
            registry.fetch_outcome(Version("20240101000000"))


@pytest.mark.unit
class TestPushInfoRecords:
    """Tests for provenance records."""

    def test_record_and_fetch(self, registry: VersionRegistry) -> None:
        version = Version("20240101000000")
        info = PushInfo(pushed_at="2024-01-01T00:00:00Z", source=PushSource(type="local"))
        registry.record_push_info(version, info)
        assert registry.fetch_push_info(version) == info

    def test_fetch_absent_returns_none(self, registry: VersionRegistry) -> None:
        assert registry.fetch_push_info(Version("20240101000000")) is None
