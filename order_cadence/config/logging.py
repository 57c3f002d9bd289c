"""
Logging for sync runs

structlog events rendered as JSON lines (or colored console output when
``log_format`` is ``text``). Every event carries the application name and
version so that sync output from several deployments can be told apart.
"""

import logging
import sys
from typing import Optional

import structlog

from order_cadence.config.settings import Settings, get_settings

# Third-party loggers that flood INFO during a sync run
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def configure_logging(verbose: bool = False, settings: Optional[Settings] = None) -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    Args:
        verbose: Force DEBUG, e.g. to see per-customer sync lines
        settings: Settings to read; the cached application settings by default
    """
    settings = settings or get_settings()
    level = logging.DEBUG if verbose else logging.getLevelName(settings.monitoring.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.monitoring.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    noisy_level = logging.INFO if settings.database.echo else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    structlog.contextvars.bind_contextvars(app=settings.app_name, version=settings.version)
    structlog.get_logger(__name__).info(
        "Logging configured",
        level=logging.getLevelName(level),
        format=settings.monitoring.log_format,
        environment=settings.app_env,
    )
