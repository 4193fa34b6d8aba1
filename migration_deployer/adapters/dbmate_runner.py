"""dbmate adapter implementing MigrationRunnerProtocol.

Runs the ``dbmate`` CLI as a subprocess. ``dbmate up`` creates the target
database when missing and applies every file not yet recorded in its
``schema_migrations`` table, so re-running a directory is harmless.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from migration_deployer.core.errors import MigrationRunnerError
from migration_deployer.ports.runner import RunnerResult

logger = logging.getLogger(__name__)

MAX_ERROR_OUTPUT = 4000


class DbmateRunner:
    """Applies migrations with the dbmate command line tool."""

    def __init__(self, binary: str = "dbmate", timeout: float | None = None) -> None:
        """Initialize the runner.

        Args:
            binary: dbmate executable name or path.
            timeout: Maximum seconds for one invocation (None = no limit).
        """
        self._binary = binary
        self._timeout = timeout

    def build_command(self, migrations_dir: Path) -> list[str]:
        return [
            self._binary,
            "--migrations-dir",
            str(migrations_dir),
            "--no-dump-schema",
            "up",
        ]

    def apply(self, migrations_dir: Path, database_url: str) -> RunnerResult:
        # The URL goes through the environment so credentials stay out of argv.
        env = {**os.environ, "DATABASE_URL": database_url}
        command = self.build_command(migrations_dir)
        logger.debug("Running %s", " ".join(command))

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise MigrationRunnerError(f"dbmate executable not found: {self._binary}") from e
        except subprocess.TimeoutExpired as e:
            raise MigrationRunnerError(
                f"dbmate timed out after {self._timeout:g}s",
                output=_decode(e.stdout) + _decode(e.stderr),
            ) from e
        except OSError as e:
            raise MigrationRunnerError(f"failed to start dbmate: {e}") from e

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()[-MAX_ERROR_OUTPUT:]
            raise MigrationRunnerError(
                f"dbmate exited with status {result.returncode}: {detail}",
                output=output,
            )
        return RunnerResult(output=output)


def _decode(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
