"""Protocol interface for the external SQL migration runner."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass
class RunnerResult:
    """Successful runner invocation."""

    output: str = ""


class MigrationRunnerProtocol(Protocol):
    """Applies all pending migration files in a directory to a database."""

    def apply(self, migrations_dir: Path, database_url: str) -> RunnerResult:
        """Apply pending migrations.

        Args:
            migrations_dir: Directory containing ``*.sql`` migration files.
            database_url: Connection string of the target database.

        Returns:
            RunnerResult with the runner's textual output.

        Raises:
            MigrationRunnerError: If the runner reports a failure.
        """
        ...
