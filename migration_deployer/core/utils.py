"""Shared utility functions for Migration Deployer.

Time helpers produce timezone-aware UTC datetimes and the compact
``YYYY-MM-DDTHH:MM:SSZ`` form used in stored JSON records. Key helpers
build object keys under a normalized prefix.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware).

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def format_rfc3339(dt: datetime) -> str:
    """Format a datetime as RFC 3339 UTC with second precision.

    Naive datetimes are assumed to already be UTC.

    Example:
        >>> format_rfc3339(datetime(2026, 1, 21, 1, 0, tzinfo=timezone.utc))
        '2026-01-21T01:00:00Z'
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_prefix(prefix: str) -> str:
    """Ensure a storage prefix ends with ``/``.

    An empty prefix stays empty (bucket root).
    """
    if prefix and not prefix.endswith("/"):
        return prefix + "/"
    return prefix


def join_key(prefix: str, *parts: str) -> str:
    """Join a normalized prefix and path segments into an object key."""
    segments = [p.strip("/") for p in parts if p]
    return normalize_prefix(prefix) + "/".join(segments)


def parse_duration(value: str | int | float) -> float:
    """Parse a duration into seconds.

    Accepts plain numbers (seconds) and Go-style duration strings such as
    ``"30s"``, ``"10m"``, ``"1h30m"`` or ``"500ms"``.

    Raises:
        ValueError: If the value cannot be parsed or is negative.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART_RE.finditer(text):
                if match.start() != pos:
                    break
                amount = float(match.group(1))
                unit = match.group(2)
                if unit == "h":
                    seconds += amount * 3600
                elif unit == "m":
                    seconds += amount * 60
                elif unit == "s":
                    seconds += amount
                else:
                    seconds += amount / 1000
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ValueError(f"Invalid duration: {value!r}") from None
    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return seconds
