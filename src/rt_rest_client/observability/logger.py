"""structlog configuration for the CLI and for applications embedding the client.

The executor (`rt.request.sent`, `rt.request.failed`) and the pagination walker
(`rt.pagination.page`, `rt.pagination.failed`) log through their module loggers;
`log_requests=True` lets their DEBUG events through without lowering the root level.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

from rt_rest_client.config.redact import redact_settings_dict

EXCHANGE_LOGGERS = (
    "rt_rest_client.adapters.rt.transport",
    "rt_rest_client.adapters.rt.pagination",
)

_FORMATS = frozenset({"json", "human"})


def _scrub_event_dict(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    return redact_settings_dict(event_dict)


def _resolve_log_format(configured: str | None, json_logs: bool) -> str:
    # Explicit setting, then LOG_FORMAT, then the json_logs flag.
    for candidate in (configured, os.environ.get("LOG_FORMAT")):
        normalized = (candidate or "").strip().lower()
        if normalized in _FORMATS:
            return normalized
    return "json" if json_logs else "human"


def configure_logging(
    *,
    log_level: str = "INFO",
    json_logs: bool = False,
    log_format: str | None = None,
    log_requests: bool = False,
) -> None:
    """
    Route structlog and stdlib logging through one stderr handler.

    LOG_LEVEL overrides `log_level`. Stdout is left alone so CLI output stays JSON.
    """
    resolved_level = ((os.environ.get("LOG_LEVEL") or "").strip() or log_level).upper()
    resolved_format = _resolve_log_format(log_format, json_logs)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _scrub_event_dict,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer: Any
    if resolved_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved_level)

    # httpx logs every request at INFO with the full URL, TicketSQL included.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    for name in EXCHANGE_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if log_requests else logging.NOTSET)

    structlog.configure(
        processors=[
            *shared_processors,
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
