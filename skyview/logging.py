from __future__ import annotations

import logging as py_logging
from typing import Optional

import structlog

from skyview.config import LoggingConfig, app_config

_configured = False

# Request lines from these libraries duplicate the weather.fetch / email.send events.
_NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def setup_logging(config: Optional[LoggingConfig] = None, *, force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return

    config = config or app_config.logging
    level = getattr(py_logging, str(config.level).upper(), py_logging.INFO)

    renderer = structlog.processors.JSONRenderer() if config.json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    py_logging.basicConfig(level=level)
    for name in _NOISY_LOGGERS:
        py_logging.getLogger(name).setLevel(max(level, py_logging.WARNING))
    _configured = True


def get_logger(name: str = __name__):
    if not _configured:
        setup_logging()
    return structlog.get_logger(name)
