"""Input validation for versions and migration files.

Everything here runs on the publishing side before any object is written,
so a malformed batch never reaches the bucket.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from migration_deployer.core.errors import ValidationError
from migration_deployer.core.models import VERSION_LENGTH, Version

logger = logging.getLogger(__name__)

MIGRATION_SUFFIX = ".sql"
UP_MARKER = "-- migrate:up"
DOWN_MARKER = "-- migrate:down"

_FILENAME_RE = re.compile(r"^\d{14}_.+\.sql$")


def validate_version(text: str) -> Version:
    """Validate a version identifier and return it as a ``Version``.

    Raises:
        ValidationError: If the version is not 14 ASCII digits.
    """
    return Version.parse(text)


def validate_migration_filename(file_name: str) -> None:
    """Validate a migration filename (``YYYYMMDDHHMMSS_description.sql``).

    Args:
        file_name: Base name of the migration file.

    Raises:
        ValidationError: With a message naming the first violated rule.
    """
    if not file_name.endswith(MIGRATION_SUFFIX):
        raise ValidationError(f"file must have .sql extension: {file_name}")

    # timestamp + "_" + at least one character + ".sql"
    if len(file_name) < VERSION_LENGTH + 1 + 1 + len(MIGRATION_SUFFIX):
        raise ValidationError(
            "filename too short, expected format: "
            f"YYYYMMDDHHMMSS_description.sql: {file_name}"
        )

    timestamp = file_name[:VERSION_LENGTH]
    if not all("0" <= c <= "9" for c in timestamp):
        raise ValidationError(
            f"filename must start with 14-digit timestamp (YYYYMMDDHHMMSS): {file_name}"
        )

    if file_name[VERSION_LENGTH] != "_":
        raise ValidationError(f"filename must have underscore after timestamp: {file_name}")

    if not _FILENAME_RE.match(file_name):
        raise ValidationError(f"invalid migration filename: {file_name}")


def validate_migration_file(path: Path) -> None:
    """Validate a migration file's name and content.

    The content must contain the ``-- migrate:up`` marker. A missing
    ``-- migrate:down`` marker is only logged as a warning.

    Raises:
        ValidationError: If the name or content is invalid, or the file
            cannot be read.
    """
    validate_migration_filename(path.name)

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ValidationError(f"failed to read file {path.name}: {e}") from e

    if UP_MARKER not in content:
        raise ValidationError(f"migration file must contain '{UP_MARKER}' marker: {path.name}")

    if DOWN_MARKER not in content:
        logger.warning(
            "Migration file %s is missing '%s' marker (not required but recommended)",
            path.name,
            DOWN_MARKER,
        )
