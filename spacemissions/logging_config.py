"""Logging setup driven by ``LoggingSettings``.

Module loggers stay plain ``logging.getLogger(__name__)``. In ``json`` mode
the root handlers render every record through structlog as one JSON object
per line; ``LOG_FORMAT=text`` keeps the classic stdlib line format.
"""

from __future__ import annotations

import logging
import sys

import structlog

from .config import LoggingSettings, settings

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Applied to records coming from stdlib loggers before rendering.
_PRE_CHAIN = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def _build_formatter(log_settings: LoggingSettings) -> logging.Formatter:
    if log_settings.format == "json":
        return json_formatter()
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(log_settings: LoggingSettings | None = None) -> None:
    """Configure the root logger. Safe to call more than once."""
    log_settings = log_settings or settings.logging
    formatter = _build_formatter(log_settings)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_settings.file:
        handlers.append(logging.FileHandler(log_settings.file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(log_settings.level.upper())

    # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
