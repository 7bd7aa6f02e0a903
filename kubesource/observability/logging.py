"""Structured logging configuration using structlog.

Our own events and the stdlib records of the Kubernetes client stack share
one JSON line format on stderr.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Third-party loggers that speak stdlib logging
_STDLIB_LOGGERS = ("kubernetes_asyncio", "aiohttp")

_SHARED_PROCESSORS: list[structlog.typing.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
]


def setup_logging(level: str = "info") -> None:
    """Configure structlog for JSON output to stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[structlog.stdlib.add_logger_name, *_SHARED_PROCESSORS],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    # Client libraries stay one level quieter than our own output
    for name in _STDLIB_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers = [handler]
        lib_logger.setLevel(max(log_level, logging.WARNING))
        lib_logger.propagate = False


def bind_cluster(cluster_name: str) -> None:
    """Tag every later log line in this context with the cluster name."""
    structlog.contextvars.bind_contextvars(cluster=cluster_name)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with the service and component name."""
    return structlog.get_logger(service="kubesource", component=component)  # type: ignore[return-value]
