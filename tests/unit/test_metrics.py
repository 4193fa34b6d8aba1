"""Unit tests for the Prometheus metrics sink."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from migration_deployer.adapters.prometheus_metrics import (
    NullMetrics,
    PrometheusMetrics,
    parse_listen_address,
)

ATTEMPTS = "dbmate_migration_attempts_total"


@pytest.fixture
def metrics() -> PrometheusMetrics:
    return PrometheusMetrics(CollectorRegistry())


@pytest.mark.unit
class TestPrometheusMetrics:
    """Tests for metric recording against an isolated registry."""

    def test_status_labels_are_primed(self, metrics: PrometheusMetrics) -> None:
        registry = metrics.registry
        assert registry.get_sample_value(ATTEMPTS, {"status": "success"}) == 0
        assert registry.get_sample_value(ATTEMPTS, {"status": "failed"}) == 0

    def test_record_attempt(self, metrics: PrometheusMetrics) -> None:
        metrics.record_attempt("success")
        metrics.record_attempt("failed")
        metrics.record_attempt("failed")
        registry = metrics.registry
        assert registry.get_sample_value(ATTEMPTS, {"status": "success"}) == 1
        assert registry.get_sample_value(ATTEMPTS, {"status": "failed"}) == 2

    def test_record_duration(self, metrics: PrometheusMetrics) -> None:
        metrics.record_duration(2.5)
        registry = metrics.registry
        assert registry.get_sample_value("dbmate_migration_duration_seconds_count") == 1
        assert registry.get_sample_value("dbmate_migration_duration_seconds_sum") == 2.5

    def test_record_last_timestamp(self, metrics: PrometheusMetrics) -> None:
        metrics.record_last_migration_timestamp(1704067200.0)
        assert metrics.registry.get_sample_value("dbmate_last_migration_timestamp") == 1704067200.0

    def test_current_version_is_reset_before_set(self, metrics: PrometheusMetrics) -> None:
        metrics.record_current_version("20240101000000")
        metrics.record_current_version("20240102000000")
        registry = metrics.registry
        assert registry.get_sample_value(
            "dbmate_current_version", {"version": "20240102000000"}
        ) == 1
        assert registry.get_sample_value(
            "dbmate_current_version", {"version": "20240101000000"}
        ) is None

    def test_instances_do_not_collide(self) -> None:
        first = PrometheusMetrics()
        second = PrometheusMetrics()
        first.record_attempt("success")
        assert second.registry.get_sample_value(
            "dbmate_migration_attempts_total", {"status": "success"}
        ) == 0

    def test_start_server(self, metrics: PrometheusMetrics) -> None:
        with patch("migration_deployer.adapters.prometheus_metrics.start_http_server") as start:
            metrics.start_server(":9090")
        start.assert_called_once_with(9090, addr="0.0.0.0", registry=metrics.registry)

    def test_null_metrics_accepts_everything(self) -> None:
        sink = NullMetrics()
        sink.record_attempt("success")
        sink.record_duration(1.0)
        sink.record_last_migration_timestamp(0.0)
        sink.record_current_version("20240101000000")


@pytest.mark.unit
class TestParseListenAddress:
    """Tests for metrics address parsing."""

    @pytest.mark.parametrize(
        ("addr", "expected"),
        [
            (":9090", ("0.0.0.0", 9090)),
            ("127.0.0.1:8080", ("127.0.0.1", 8080)),
            ("[::1]:9100", ("::1", 9100)),
        ],
    )
    def test_valid(self, addr: str, expected: tuple[str, int]) -> None:
        assert parse_listen_address(addr) == expected

    @pytest.mark.parametrize("addr", ["9090", "localhost:", "host:port"])
    def test_invalid(self, addr: str) -> None:
        with pytest.raises(ValueError):
            parse_listen_address(addr)
