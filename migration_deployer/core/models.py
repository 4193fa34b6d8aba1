"""Data models for Migration Deployer."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from migration_deployer.core.errors import ValidationError
from migration_deployer.core.utils import format_rfc3339, utc_now

VERSION_LENGTH = 14


@dataclass(frozen=True, order=True)
class Version:
    """A migration batch identifier (``YYYYMMDDHHMMSS``).

    Ordering follows the underlying string, which for fixed-width digit
    strings is also chronological order. Construct through ``parse`` so the
    shape is checked at every boundary.
    """

    value: str

    def __post_init__(self) -> None:
        if not is_version_string(self.value):
            raise ValidationError(
                f"version must be {VERSION_LENGTH} digits (YYYYMMDDHHMMSS): {self.value!r}"
            )

    @classmethod
    def parse(cls, text: str | Version) -> Version:
        """Parse and validate a version string.

        Raises:
            ValidationError: If the text is not exactly 14 ASCII digits.
        """
        if isinstance(text, Version):
            return text
        return cls(text.strip())

    def __str__(self) -> str:
        return self.value


def is_version_string(text: str) -> bool:
    """Check whether ``text`` has the 14-ASCII-digit version shape."""
    return (
        isinstance(text, str)
        and len(text) == VERSION_LENGTH
        and all("0" <= c <= "9" for c in text)
    )


class OutcomeStatus(str, Enum):
    """Status of one execution attempt."""

    SUCCESS = "success"
    FAILED = "failed"


class Outcome(BaseModel):
    """Durable record of one execution attempt against a version.

    The existence of the stored record marks the version as applied; the
    status only says whether the attempt succeeded.
    """

    version: str
    status: OutcomeStatus
    timestamp: str = Field(default_factory=lambda: format_rfc3339(utc_now()))
    migrations_applied: int = Field(default=0, ge=0)
    error: str = ""
    log: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape.

        ``migrations_applied`` and ``error`` are omitted when zero/empty.
        """
        data: dict[str, Any] = {
            "version": self.version,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.migrations_applied:
            data["migrations_applied"] = self.migrations_applied
        if self.error:
            data["error"] = self.error
        data["log"] = self.log
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str | bytes) -> Outcome:
        """Parse a stored outcome record.

        Raises:
            ValueError: If the payload is not valid JSON or misses fields.
        """
        return cls.model_validate_json(raw)

    @classmethod
    def success(cls, version: str, migrations_applied: int, log: str, timestamp: str) -> Outcome:
        return cls(
            version=version,
            status=OutcomeStatus.SUCCESS,
            timestamp=timestamp,
            migrations_applied=migrations_applied,
            log=log,
        )

    @classmethod
    def failure(cls, version: str, error: str, log: str, timestamp: str) -> Outcome:
        return cls(
            version=version,
            status=OutcomeStatus.FAILED,
            timestamp=timestamp,
            error=error,
            log=log,
        )


class PushSource(BaseModel):
    """Where a published version came from."""

    type: Literal["ci", "local"] = "local"
    repository: str | None = None
    workflow: str | None = None
    run_id: str | None = None
    run_url: str | None = None
    actor: str | None = None
    sha: str | None = None
    ref: str | None = None


class PushInfo(BaseModel):
    """Provenance metadata stored alongside a published version."""

    pushed_at: str = Field(default_factory=lambda: format_rfc3339(utc_now()))
    source: PushSource = Field(default_factory=PushSource)

    def to_json(self) -> str:
        # Only the CI source carries the optional fields, and only when known.
        data = self.model_dump(exclude_none=True)
        return json.dumps(data, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str | bytes) -> PushInfo:
        return cls.model_validate_json(raw)
