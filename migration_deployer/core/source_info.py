"""Collect provenance metadata for a publish operation from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping

from migration_deployer.core.models import PushInfo, PushSource
from migration_deployer.core.utils import format_rfc3339, utc_now


def collect_push_info(environ: Mapping[str, str] | None = None) -> PushInfo:
    """Build a ``PushInfo`` for the current execution environment.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        PushInfo stamped with the current UTC time.
    """
    env = os.environ if environ is None else environ
    return PushInfo(
        pushed_at=format_rfc3339(utc_now()),
        source=collect_push_source(env),
    )


def collect_push_source(environ: Mapping[str, str]) -> PushSource:
    """Detect the execution environment (GitHub Actions CI or local)."""
    if environ.get("GITHUB_ACTIONS") == "true":
        return _collect_ci_source(environ)
    return PushSource(type="local")


def _collect_ci_source(environ: Mapping[str, str]) -> PushSource:
    server_url = environ.get("GITHUB_SERVER_URL", "")
    repository = environ.get("GITHUB_REPOSITORY", "")
    run_id = environ.get("GITHUB_RUN_ID", "")

    run_url = None
    if server_url and repository and run_id:
        run_url = f"{server_url}/{repository}/actions/runs/{run_id}"

    return PushSource(
        type="ci",
        repository=repository or None,
        workflow=environ.get("GITHUB_WORKFLOW") or None,
        run_id=run_id or None,
        run_url=run_url,
        actor=environ.get("GITHUB_ACTOR") or None,
        sha=environ.get("GITHUB_SHA") or None,
        ref=environ.get("GITHUB_REF") or None,
    )
