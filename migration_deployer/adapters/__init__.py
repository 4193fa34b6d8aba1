"""Infrastructure adapters for Migration Deployer."""

from migration_deployer.adapters.dbmate_runner import DbmateRunner
from migration_deployer.adapters.prometheus_metrics import NullMetrics, PrometheusMetrics
from migration_deployer.adapters.s3_store import S3ObjectStore, create_s3_client
from migration_deployer.adapters.webhook_notifier import WebhookNotifier

__all__ = [
    "DbmateRunner",
    "NullMetrics",
    "PrometheusMetrics",
    "S3ObjectStore",
    "WebhookNotifier",
    "create_s3_client",
]
