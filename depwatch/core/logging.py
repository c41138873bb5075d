"""Structured logging for the scan_deps script — structlog over stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and stdlib logging, writing to stderr.

    ``level`` and ``fmt`` override the environment:
        DEPWATCH_LOG_LEVEL  — depwatch log level (default: WARNING)
        DEPWATCH_LOG_FORMAT — console | json (default: console)
    """
    log_level = (level or os.environ.get("DEPWATCH_LOG_LEVEL", "WARNING")).upper()
    if log_level not in _LEVELS:
        log_level = "WARNING"
    log_format = (fmt or os.environ.get("DEPWATCH_LOG_FORMAT", "console")).lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    if log_format == "json":
        shared_processors += [
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
        ]
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdout carries the report; logs stay on stderr
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "loggers": {
                "depwatch": {"handlers": ["stderr"], "level": log_level, "propagate": False},
                "httpx": {"handlers": ["stderr"], "level": "WARNING", "propagate": False},
            },
        }
    )
