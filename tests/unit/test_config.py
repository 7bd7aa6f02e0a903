"""Tests for environment configuration loading."""

from __future__ import annotations

import os

import pytest

from kubesource.config import cluster_name_from_host, load_config


class TestLoadConfig:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in list(os.environ):
            if key.startswith("KUBESOURCE_"):
                monkeypatch.delenv(key)
        cfg = load_config()
        assert cfg.cluster_name == ""
        assert cfg.kubernetes.api_timeout == 10.0
        assert cfg.namespaces.cache_seconds == 60
        assert cfg.watch.max_reconnect_failures == 3
        assert cfg.watch.backoff_base == 1.0
        assert cfg.watch.backoff_max == 30.0
        assert cfg.watch.jitter_ratio == 0.5
        assert cfg.watch.signal_queue_size == 16
        assert cfg.metrics.port == 0
        assert cfg.log.level == "info"

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_CLUSTER_NAME", "prod")
        monkeypatch.setenv("KUBESOURCE_API_TIMEOUT", "30")
        monkeypatch.setenv("KUBESOURCE_WATCH_MAX_RECONNECT_FAILURES", "5")
        monkeypatch.setenv("KUBESOURCE_LOG_LEVEL", "DEBUG")
        cfg = load_config()
        assert cfg.cluster_name == "prod"
        assert cfg.kubernetes.api_timeout == 30.0
        assert cfg.watch.max_reconnect_failures == 5
        assert cfg.log.level == "debug"

    def test_values_clamped_to_range(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_API_TIMEOUT", "500")
        monkeypatch.setenv("KUBESOURCE_SIGNAL_QUEUE_SIZE", "0")
        monkeypatch.setenv("KUBESOURCE_WATCH_JITTER_RATIO", "3")
        cfg = load_config()
        assert cfg.kubernetes.api_timeout == 120.0
        assert cfg.watch.signal_queue_size == 1
        assert cfg.watch.jitter_ratio == 1.0

    def test_invalid_log_level_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="log level"):
            load_config()

    def test_non_numeric_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_METRICS_PORT", "http")
        with pytest.raises(ValueError):
            load_config()

    def test_backoff_max_below_base_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_WATCH_BACKOFF_BASE", "10")
        monkeypatch.setenv("KUBESOURCE_WATCH_BACKOFF_MAX", "2")
        with pytest.raises(ValueError, match="backoff"):
            load_config()


class TestClusterNameFromHost:
    @pytest.mark.parametrize(
        ("host", "expected"),
        [
            ("https://10.0.0.1:6443", "10.0.0.1:6443"),
            ("https://api.example.com", "api.example.com:443"),
            ("http://localhost", "localhost:80"),
            ("api.example.com:8443", "api.example.com:8443"),
            ("https://[fd00::1]:6443", "[fd00::1]:6443"),
        ],
    )
    def test_host_port(self, host: str, expected: str) -> None:
        assert cluster_name_from_host(host) == expected

    def test_empty_host_raises(self) -> None:
        with pytest.raises(ValueError):
            cluster_name_from_host("")
