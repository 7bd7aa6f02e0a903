"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class KubernetesConfig:
    """Kubernetes API client configuration."""

    kubeconfig: str = ""
    api_timeout: float = 10.0


@dataclass
class NamespaceCacheConfig:
    """Namespace set cache configuration."""

    cache_seconds: int = 60


@dataclass
class WatchConfig:
    """Namespace watch reconciliation configuration."""

    max_reconnect_failures: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter_ratio: float = 0.5
    signal_queue_size: int = 16


@dataclass
class MetricsConfig:
    """Prometheus exposition configuration.  Port 0 disables the listener."""

    port: int = 0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeSourceConfig:
    """Top-level kubesource configuration."""

    cluster_name: str = ""
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    namespaces: NamespaceCacheConfig = field(default_factory=NamespaceCacheConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log: LogConfig = field(default_factory=LogConfig)
