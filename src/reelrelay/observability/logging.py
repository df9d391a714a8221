"""structlog setup for the service.

Every event carries ``service`` and ``environment``, plus ``request_id`` while
an HTTP request is being handled. Production and test emit JSON lines; the
development environment gets the coloured console renderer.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, MutableMapping

import structlog

SERVICE_NAME = "reelrelay"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

Processor = Any


def _add_request_id(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    request_id = request_id_var.get("")
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def _service_fields(environment: str) -> Processor:
    def _add(
        _logger: logging.Logger,
        _method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return _add


def configure_logging(level: str = "INFO", environment: str = "development") -> None:
    renderer: Processor
    if environment == "development":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _service_fields(environment),
            _add_request_id,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    if name is None:
        return structlog.get_logger(SERVICE_NAME)
    return structlog.get_logger(name)


logger = get_logger(SERVICE_NAME)
