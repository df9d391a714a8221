"""reelrelay observability - structured logging and Prometheus metrics.

Usage:
    from reelrelay.observability import get_logger

    logger = get_logger(__name__)
    logger.info("endpoint_mounted", path=path)
"""

from __future__ import annotations

from reelrelay.observability.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "init_observability",
]

_OBSERVABILITY_INITIALIZED = False


def init_observability() -> None:
    """Initialize logging for the process (idempotent).

    Not executed on import so `reelrelay` can be used as a library without
    mutating global logging configuration.
    """
    global _OBSERVABILITY_INITIALIZED
    if _OBSERVABILITY_INITIALIZED:
        return
    from reelrelay.config import settings

    configure_logging(settings.log_level, settings.environment)
    _OBSERVABILITY_INITIALIZED = True
