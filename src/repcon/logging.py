from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False
_FILE_HANDLERS: dict[str, logging.Handler] = {}


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Set up structured logging for the repcon package.

    The first call configures structlog on top of the stdlib `logging` module,
    writing to stderr (or to `filename` when given). Later calls with a filename
    attach an extra UTF-8 file handler so a log file chosen on the command line
    still receives every event.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.

    Returns:
        A structlog logger instance configured for the repcon package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        handlers: list[logging.Handler] = []
        if filename:
            handler = logging.FileHandler(str(filename), encoding="utf-8")
            _FILE_HANDLERS[str(filename)] = handler
            handlers.append(handler)
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=logging.INFO,
            handlers=handlers,
            format="%(message)s",
        )
        # basicConfig is a no-op when the root logger already has handlers
        logging.getLogger("repcon").setLevel(logging.INFO)
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True
    elif filename and str(filename) not in _FILE_HANDLERS:
        handler = logging.FileHandler(str(filename), encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(message)s"))
        _FILE_HANDLERS[str(filename)] = handler
        logging.getLogger().addHandler(handler)

    return structlog.get_logger("repcon")


logger = setup_logging()
