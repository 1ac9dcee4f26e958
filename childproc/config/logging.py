"""Structured logging configuration for runtime entrypoints.

Configures structlog over stdlib logging once per process. Modules obtain
loggers with `structlog.get_logger(__name__)` and log key-value events.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import Processor

_configured = False


def config_configure_logging(level: str = "INFO", log_format: str = "console", force: bool = False) -> None:
    """Configure structlog processors and the stdlib root logger.

    Subsequent calls are no-ops unless `force` is set.

    Args:
        level: Log level name (`DEBUG`, `INFO`, `WARNING`, `ERROR`).
        log_format: Renderer name, `json` or `console`.
        force: Reconfigure even if logging was already configured.

    Returns:
        None: Logging is configured as a side effect.

    Raises:
        ValueError: Raised when level or format is unknown.
    """

    global _configured

    if _configured and not force:
        return

    normalized_level = level.strip().upper()
    level_number = logging.getLevelName(normalized_level)
    if not isinstance(level_number, int):
        raise ValueError(f"unknown log level: {level}")

    normalized_format = log_format.strip().lower()
    if normalized_format not in {"json", "console"}:
        raise ValueError(f"unknown log format: {log_format}")

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]
    if normalized_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level_number, force=True)
    logging.getLogger("childproc").setLevel(level_number)

    _configured = True
