"""Service factory for dependency injection and initialization.

Builds the adapters and services each CLI mode needs from a Settings
instance. Every ``create_*`` method checks only the settings its component
requires, so ``push`` does not demand a database URL and ``once`` does not
demand a webhook.

Usage:
    from migration_deployer.factory import ServiceFactory

    factory = ServiceFactory(settings)
    driver = factory.create_driver()
"""

from __future__ import annotations

import logging

from migration_deployer.adapters.dbmate_runner import DbmateRunner
from migration_deployer.adapters.prometheus_metrics import NullMetrics, PrometheusMetrics
from migration_deployer.adapters.s3_store import S3ObjectStore, create_s3_client
from migration_deployer.adapters.webhook_notifier import WebhookNotifier
from migration_deployer.config import Settings
from migration_deployer.ports.metrics import MetricsSinkProtocol
from migration_deployer.ports.notifier import NotifierProtocol
from migration_deployer.ports.runner import MigrationRunnerProtocol
from migration_deployer.ports.storage import ObjectStoreProtocol
from migration_deployer.services.driver import MigrationDriver
from migration_deployer.services.executor import MigrationExecutor
from migration_deployer.services.publisher import Publisher
from migration_deployer.services.registry import VersionRegistry
from migration_deployer.services.waiter import OutcomeWaiter

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Factory for creating and wiring all services.

    Example:
        factory = ServiceFactory(settings, store=InMemoryObjectStore())
        publisher = factory.create_publisher()
    """

    def __init__(
        self,
        settings: Settings,
        store: ObjectStoreProtocol | None = None,
        runner: MigrationRunnerProtocol | None = None,
        metrics: MetricsSinkProtocol | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            settings: Application settings.
            store: Optional object store override for testing.
            runner: Optional migration runner override for testing.
            metrics: Optional metrics sink override for testing.
        """
        self._settings = settings
        self._store = store
        self._runner = runner
        self._metrics = metrics

    @property
    def settings(self) -> Settings:
        return self._settings

    def create_store(self) -> ObjectStoreProtocol:
        """Create (once) the object store adapter."""
        if self._store is None:
            client = create_s3_client(
                endpoint_url=self._settings.s3_endpoint_url,
                region=self._settings.aws_region,
            )
            self._store = S3ObjectStore(client)
            logger.debug(
                "Created S3 object store (endpoint=%s)", self._settings.s3_endpoint_url or "default"
            )
        return self._store

    def create_registry(self) -> VersionRegistry:
        self._settings.require("s3_bucket")
        bucket = self._settings.s3_bucket or ""
        return VersionRegistry(self.create_store(), bucket, self._settings.s3_path_prefix)

    def create_runner(self) -> MigrationRunnerProtocol:
        if self._runner is None:
            self._runner = DbmateRunner(
                binary=self._settings.dbmate_binary,
                timeout=self._settings.runner_timeout,
            )
        return self._runner

    def create_metrics(self) -> MetricsSinkProtocol:
        """Create (once) the metrics sink.

        Returns a Prometheus sink with its endpoint started when a listen
        address is configured, otherwise a no-op sink.
        """
        if self._metrics is None:
            if self._settings.metrics_addr:
                prometheus = PrometheusMetrics()
                prometheus.start_server(self._settings.metrics_addr)
                self._metrics = prometheus
            else:
                self._metrics = NullMetrics()
        return self._metrics

    def create_executor(self) -> MigrationExecutor:
        return MigrationExecutor(self.create_store(), self.create_runner())

    def create_driver(self) -> MigrationDriver:
        """Create the consumer driver.

        Raises:
            ConfigurationError: If DATABASE_URL or S3_BUCKET is missing.
        """
        self._settings.require("database_url", "s3_bucket")
        database_url = self._settings.database_url or ""
        return MigrationDriver(
            registry=self.create_registry(),
            executor=self.create_executor(),
            database_url=database_url,
            metrics=self.create_metrics(),
            poll_interval=self._settings.poll_interval,
            exclusive_outcome=self._settings.outcome_exclusive_write,
        )

    def create_publisher(self) -> Publisher:
        self._settings.require("s3_bucket")
        bucket = self._settings.s3_bucket or ""
        return Publisher(self.create_store(), bucket, self._settings.s3_path_prefix)

    def create_waiter(self) -> OutcomeWaiter:
        return OutcomeWaiter(
            registry=self.create_registry(),
            poll_interval=self._settings.wait_poll_interval,
            timeout=self._settings.wait_timeout,
            fetch_attempts=self._settings.outcome_fetch_attempts,
            fetch_backoff=self._settings.outcome_fetch_backoff,
        )

    def create_notifier(self) -> NotifierProtocol | None:
        """Create the webhook notifier, or None when no webhook is configured."""
        if not self._settings.slack_incoming_webhook:
            return None
        return WebhookNotifier(
            self._settings.slack_incoming_webhook,
            timeout=self._settings.notification_timeout,
        )
