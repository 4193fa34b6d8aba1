"""Unit tests for the dbmate runner adapter."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from migration_deployer.adapters.dbmate_runner import DbmateRunner
from migration_deployer.core.errors import MigrationRunnerError
from migration_deployer.core.models import OutcomeStatus, Version
from migration_deployer.services.executor import MigrationExecutor
from tests.conftest import BUCKET, PREFIX, UP_DOWN_SQL
from tests.fakes import InMemoryObjectStore

DATABASE_URL = "postgres://app:secret@db:5432/app"
SYNTAX_ERROR = "Error: syntax error at or near \"TABL\"\n"


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    result = MagicMock(spec=subprocess.CompletedProcess)
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


@pytest.mark.unit
class TestDbmateRunner:
    """Tests for subprocess invocation and error mapping."""

    def test_build_command(self, tmp_path: Path) -> None:
        runner = DbmateRunner(binary="/usr/local/bin/dbmate")
        assert runner.build_command(tmp_path) == [
            "/usr/local/bin/dbmate",
            "--migrations-dir",
            str(tmp_path),
            "--no-dump-schema",
            "up",
        ]

    def test_apply_success(self, tmp_path: Path) -> None:
        with patch(
            "migration_deployer.adapters.dbmate_runner.subprocess.run",
            return_value=completed(stdout="Applying: 20240101000000_init.sql\n"),
        ) as run:
            result = DbmateRunner(timeout=60).apply(tmp_path, DATABASE_URL)

        assert "Applying" in result.output
        args, kwargs = run.call_args
        assert DATABASE_URL not in args[0]
        assert kwargs["env"]["DATABASE_URL"] == DATABASE_URL
        assert kwargs["timeout"] == 60
        assert kwargs["check"] is False

    def test_non_zero_exit(self, tmp_path: Path) -> None:
        with patch(
            "migration_deployer.adapters.dbmate_runner.subprocess.run",
            return_value=completed(returncode=1, stderr=SYNTAX_ERROR),
        ):
            with pytest.raises(MigrationRunnerError) as exc_info:
                DbmateRunner().apply(tmp_path, DATABASE_URL)

        assert str(exc_info.value).startswith("dbmate exited with status 1: ")
        assert "syntax error" in str(exc_info.value)
        assert "syntax error" in exc_info.value.output

    def test_missing_binary(self, tmp_path: Path) -> None:
        with patch(
            "migration_deployer.adapters.dbmate_runner.subprocess.run",
            side_effect=FileNotFoundError(2, "No such file or directory"),
        ):
            with pytest.raises(MigrationRunnerError, match="executable not found"):
                DbmateRunner(binary="dbmate-missing").apply(tmp_path, DATABASE_URL)

    def test_timeout(self, tmp_path: Path) -> None:
        with patch(
            "migration_deployer.adapters.dbmate_runner.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="dbmate", timeout=5, output=b"partial"),
        ):
            with pytest.raises(MigrationRunnerError, match="timed out after 5s") as exc_info:
                DbmateRunner(timeout=5).apply(tmp_path, DATABASE_URL)
        assert exc_info.value.output == "partial"


def write_fake_dbmate(directory: Path, body: str) -> Path:
    script = directory / "dbmate"
    script.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    script.chmod(0o755)
    return script


@pytest.mark.unit
@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
class TestUndecodableOutput:
    """Output that is not valid UTF-8 must not escape as a decode error."""

    LATIN1_FAILURE = "printf 'Applying: \\377\\376 caf\\351\\n'; exit 1"

    def test_bytes_are_replaced(self, tmp_path: Path) -> None:
        script = write_fake_dbmate(tmp_path, self.LATIN1_FAILURE)

        with pytest.raises(MigrationRunnerError) as exc_info:
            DbmateRunner(binary=str(script)).apply(tmp_path, DATABASE_URL)

        assert "�" in exc_info.value.output
        assert "Applying: " in exc_info.value.output

    def test_executor_records_failed_outcome(
        self, tmp_path: Path, store: InMemoryObjectStore
    ) -> None:
        script = write_fake_dbmate(tmp_path, self.LATIN1_FAILURE)
        store.add(BUCKET, f"{PREFIX}20240101000000/migrations/20240101000000_init.sql", UP_DOWN_SQL)
        executor = MigrationExecutor(store, DbmateRunner(binary=str(script)))

        outcome = executor.execute(BUCKET, PREFIX, Version("20240101000000"), DATABASE_URL)

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error.startswith("Migration runner failed: dbmate exited with status 1")
        assert "caf�" in outcome.log
