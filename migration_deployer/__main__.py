"""Entry point for the Migration Deployer CLI."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, NoReturn

import pydantic

from migration_deployer.config import Settings, get_settings
from migration_deployer.core.errors import (
    ConfigurationError,
    MigrationDeployerError,
    WaitCancelledError,
    WaitTimeoutError,
)
from migration_deployer.core.logging import configure_logging
from migration_deployer.core.models import Version
from migration_deployer.core.utils import parse_duration

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130

# Argparse destinations that override the matching Settings field when given.
_SETTINGS_OVERRIDES = (
    "database_url",
    "s3_bucket",
    "s3_path_prefix",
    "s3_endpoint_url",
    "metrics_addr",
    "log_level",
    "log_format",
    "poll_interval",
    "wait_timeout",
    "wait_poll_interval",
    "slack_incoming_webhook",
)


def _duration_arg(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _version_arg(value: str) -> Version:
    try:
        return Version.parse(value)
    except MigrationDeployerError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge command line overrides into the environment settings.

    Raises:
        pydantic.ValidationError: If the merged values are invalid.
    """
    overrides = {
        name: getattr(args, name)
        for name in _SETTINGS_OVERRIDES
        if getattr(args, name, None) is not None
    }
    settings = get_settings()
    if overrides:
        settings = Settings(**{**settings.model_dump(), **overrides})
    return settings


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Set ``stop_event`` on SIGINT/SIGTERM."""

    def handle_shutdown(signum: int, frame: Any) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down...", sig_name)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)


def run_daemon(settings: Settings) -> int:
    """Run the driver continuously until SIGINT/SIGTERM.

    Returns:
        Exit code (0 after a clean shutdown, 2 for configuration errors).
    """
    from migration_deployer.factory import ServiceFactory

    try:
        driver = ServiceFactory(settings).create_driver()
    except (ConfigurationError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_USAGE

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    logger.info(
        "Starting migration daemon (bucket=%s, prefix=%s, poll_interval=%gs)",
        settings.s3_bucket,
        settings.s3_path_prefix or "(none)",
        settings.poll_interval,
    )
    driver.run_forever(stop_event)
    return EXIT_OK


def run_once(settings: Settings) -> int:
    """Run a single check-execute-record cycle.

    Returns:
        Exit code (0 for success or nothing to do, 1 for failure).
    """
    from migration_deployer.factory import ServiceFactory

    try:
        driver = ServiceFactory(settings).create_driver()
    except (ConfigurationError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_USAGE

    try:
        result = driver.run_once()
    except MigrationDeployerError as e:
        logger.error("Migration check failed: %s", e)
        return EXIT_FAILURE

    if result.status.is_failure:
        return EXIT_FAILURE
    return EXIT_OK


def run_push(settings: Settings, args: argparse.Namespace) -> int:
    """Validate and upload a migration batch as a new version.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    from migration_deployer.core.source_info import collect_push_info
    from migration_deployer.factory import ServiceFactory

    try:
        publisher = ServiceFactory(settings).create_publisher()
    except ConfigurationError as e:
        logger.error("%s", e)
        return EXIT_USAGE

    push_info = None if args.no_push_info else collect_push_info()
    try:
        result = publisher.publish(
            args.version_id,
            Path(args.migrations_dir),
            validate=not args.no_validate,
            dry_run=args.dry_run,
            push_info=push_info,
        )
    except MigrationDeployerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    location = f"s3://{result.bucket}/{publisher.registry.prefix}{result.version}/"
    if result.dry_run:
        print(f"[DRY RUN] Would upload {result.file_count} file(s) to {location}")
        for key in result.migration_keys:
            print(f"  - {key}")
        print("Run without --dry-run to apply.")
    else:
        print(f"Pushed {result.file_count} migration file(s) to {location}")
        if result.push_info_key:
            print(f"Push info: s3://{result.bucket}/{result.push_info_key}")
    return EXIT_OK


def run_wait_and_notify(
    settings: Settings,
    args: argparse.Namespace,
    cancel_event: threading.Event | None = None,
) -> int:
    """Wait for a version's outcome and send a notification.

    Returns:
        Exit code mirroring the migration status (0 success, 1 failure),
        1 on timeout and 130 when cancelled.
    """
    from migration_deployer.factory import ServiceFactory
    from migration_deployer.services.waiter import wait_and_notify

    factory = ServiceFactory(settings)
    try:
        waiter = factory.create_waiter()
    except (ConfigurationError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_USAGE
    notifier = factory.create_notifier()
    if notifier is None:
        logger.info("No webhook configured; notification will be skipped")

    if cancel_event is None:
        cancel_event = threading.Event()
        install_signal_handlers(cancel_event)

    try:
        report = wait_and_notify(waiter, args.version_id, notifier, cancel_event)
    except WaitCancelledError as e:
        logger.warning("%s", e)
        return EXIT_CANCELLED
    except WaitTimeoutError as e:
        logger.error("%s", e)
        return EXIT_FAILURE
    except MigrationDeployerError as e:
        logger.error("Failed to get outcome: %s", e)
        return EXIT_FAILURE

    outcome = report.outcome
    print(f"Migration {outcome.status.value} for version {report.version}")
    if outcome.error:
        print(f"Error: {outcome.error}")
    return EXIT_OK if report.succeeded else EXIT_FAILURE


def run_version() -> None:
    """Print version information."""
    from migration_deployer import __version__

    print(f"migration-deployer {__version__}")


def _add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--s3-bucket",
        default=None,
        help="Bucket holding the version directories (env: S3_BUCKET)",
    )
    parser.add_argument(
        "--s3-path-prefix",
        default=None,
        help="Prefix of the version directories (env: S3_PATH_PREFIX)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="migration-deployer",
        description="Deploy SQL migrations through an S3-compatible bucket",
    )
    parser.add_argument(
        "--version",
        dest="show_version",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "--s3-endpoint-url",
        default=None,
        help="Custom S3 endpoint, e.g. MinIO (env: S3_ENDPOINT_URL)",
    )
    parser.add_argument(
        "--metrics-addr",
        default=None,
        help="Serve Prometheus metrics on host:port or :port (env: METRICS_ADDR)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (env: LOG_LEVEL, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["text", "json"],
        help="Log output format (env: LOG_FORMAT, default: text)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
    )

    # Daemon command (default)
    daemon_parser = subparsers.add_parser(
        "daemon",
        help="Poll for new versions and apply them (default if no command given)",
    )
    daemon_parser.add_argument(
        "--database-url",
        default=None,
        help="Target database connection string (env: DATABASE_URL)",
    )
    _add_storage_arguments(daemon_parser)
    daemon_parser.add_argument(
        "--poll-interval",
        type=_duration_arg,
        default=None,
        help="Time between checks, e.g. 30s or 5m (env: POLL_INTERVAL, default: 30s)",
    )

    # Once command
    once_parser = subparsers.add_parser(
        "once",
        help="Check once, apply the newest version if needed, and exit",
    )
    once_parser.add_argument(
        "--database-url",
        default=None,
        help="Target database connection string (env: DATABASE_URL)",
    )
    _add_storage_arguments(once_parser)

    # Push command
    push_parser = subparsers.add_parser(
        "push",
        help="Validate and upload migration files as a new version",
    )
    push_parser.add_argument(
        "-m",
        "--migrations-dir",
        required=True,
        help="Local directory containing *.sql migration files",
    )
    push_parser.add_argument(
        "-V",
        "--version-id",
        required=True,
        type=_version_arg,
        help="Version identifier (14 digits, YYYYMMDDHHMMSS)",
    )
    _add_storage_arguments(push_parser)
    push_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be uploaded without uploading",
    )
    push_parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip migration content validation (filenames are always checked)",
    )
    push_parser.add_argument(
        "--no-push-info",
        action="store_true",
        help="Do not upload the push-info provenance record",
    )

    # Wait-and-notify command
    wait_parser = subparsers.add_parser(
        "wait-and-notify",
        help="Wait for a version's outcome and send a webhook notification",
    )
    wait_parser.add_argument(
        "-V",
        "--version-id",
        required=True,
        type=_version_arg,
        help="Version identifier to wait for",
    )
    _add_storage_arguments(wait_parser)
    wait_parser.add_argument(
        "--slack-incoming-webhook",
        default=None,
        help="Incoming webhook URL (env: SLACK_INCOMING_WEBHOOK)",
    )
    wait_parser.add_argument(
        "--timeout",
        dest="wait_timeout",
        type=_duration_arg,
        default=None,
        help="Overall wait deadline, e.g. 10m (env: WAIT_TIMEOUT, default: 10m)",
    )
    wait_parser.add_argument(
        "--poll-interval",
        dest="wait_poll_interval",
        type=_duration_arg,
        default=None,
        help="Time between checks (env: WAIT_POLL_INTERVAL, default: 5s)",
    )

    # Version command
    subparsers.add_parser(
        "version",
        help="Show version and exit",
    )

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point with subcommand support."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.show_version or args.command == "version":
        run_version()
        sys.exit(EXIT_OK)

    try:
        settings = load_settings(args)
    except pydantic.ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")

    if args.command == "once":
        sys.exit(run_once(settings))
    elif args.command == "push":
        sys.exit(run_push(settings, args))
    elif args.command == "wait-and-notify":
        sys.exit(run_wait_and_notify(settings, args))
    elif args.command == "daemon" or args.command is None:
        # Default to running the daemon
        sys.exit(run_daemon(settings))
    else:
        parser.print_help()
        sys.exit(EXIT_USAGE)


if __name__ == "__main__":
    main()
