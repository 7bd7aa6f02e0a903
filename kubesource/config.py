"""Configuration loading from environment variables."""

from __future__ import annotations

import os
from urllib.parse import urlparse

from kubesource.models.config import (
    KubernetesConfig,
    KubeSourceConfig,
    LogConfig,
    MetricsConfig,
    NamespaceCacheConfig,
    WatchConfig,
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBESOURCE_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_backoff(base: float, maximum: float) -> tuple[float, float]:
    if maximum < base:
        raise ValueError(f"Watch backoff max ({maximum}) must not be below backoff base ({base})")
    return base, maximum


def cluster_name_from_host(host: str) -> str:
    """Derive a cluster name from the API server URL as ``host:port``.

    A missing port is filled in from the scheme so that the same cluster
    always yields the same name.
    """
    parsed = urlparse(host if "://" in host else f"https://{host}")
    hostname = parsed.hostname or ""
    if not hostname:
        raise ValueError(f"Cannot derive a cluster name from API host {host!r}")
    if ":" in hostname:
        hostname = f"[{hostname}]"
    port = parsed.port or _DEFAULT_PORTS.get(parsed.scheme, 443)
    return f"{hostname}:{port}"


def load_config() -> KubeSourceConfig:
    """Load configuration from KUBESOURCE_* environment variables."""
    backoff_base, backoff_max = _validate_backoff(
        _env_float("WATCH_BACKOFF_BASE", 1.0, min_val=0.0),
        _env_float("WATCH_BACKOFF_MAX", 30.0, min_val=0.0),
    )
    return KubeSourceConfig(
        cluster_name=_env("CLUSTER_NAME", ""),
        kubernetes=KubernetesConfig(
            kubeconfig=_env("KUBECONFIG", ""),
            api_timeout=float(_env_int("API_TIMEOUT", 10, min_val=1, max_val=120)),
        ),
        namespaces=NamespaceCacheConfig(
            cache_seconds=_env_int("NAMESPACE_CACHE_SECONDS", 60, min_val=0, max_val=3600),
        ),
        watch=WatchConfig(
            max_reconnect_failures=_env_int("WATCH_MAX_RECONNECT_FAILURES", 3, min_val=0, max_val=20),
            backoff_base=backoff_base,
            backoff_max=backoff_max,
            jitter_ratio=_env_float("WATCH_JITTER_RATIO", 0.5, min_val=0.0, max_val=1.0),
            signal_queue_size=_env_int("SIGNAL_QUEUE_SIZE", 16, min_val=1, max_val=1024),
        ),
        metrics=MetricsConfig(
            port=_env_int("METRICS_PORT", 0, min_val=0, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
