"""Logging for coda-tree-export, built on loguru.

Every record carries a ``name`` extra: the module for records logged through
``get_logger``, the stdlib logger for intercepted httpx/httpcore records.
Export code adds ``doc`` and ``page`` extras so file logs can be filtered
by page.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger, Record

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

CONSOLE_FORMAT = (
    "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{line} | {extra} | {message}"
)


class InterceptHandler(logging.Handler):
    """Forwards stdlib records (httpx, httpcore) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(name=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def _default_name(record: Record) -> None:
    record["extra"].setdefault("name", record["name"] or "root")


def setup_logging(
    level: LogLevel = "INFO",
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> Logger:
    """Configure console (and optionally file) logging.

    ``verbose`` selects DEBUG and wins over ``quiet``, which selects WARNING.
    The file handler, when enabled, always records DEBUG and above.
    """
    if verbose:
        effective_level: LogLevel = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level

    logger.remove()
    logger.configure(patcher=_default_name)
    logger.add(sys.stderr, level=effective_level, format=CONSOLE_FORMAT, diagnose=False)
    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
            serialize=serialize,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    http_level = logging.DEBUG if effective_level in ("TRACE", "DEBUG") else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(http_level)

    return logger


def reset_logging() -> None:
    """Drop every handler (tests)."""
    logger.remove()


def get_logger(name: str) -> Logger:
    """Logger with ``name`` bound, typically ``get_logger(__name__)``."""
    return logger.bind(name=name)


def bind_page(doc_id: str, page_id: str) -> Logger:
    """Logger bound to one page of a doc."""
    return logger.bind(name="export", doc=doc_id, page=page_id)


class LogContext:
    """Binds extras to every record logged inside the block.

    Usage:
        with LogContext(doc="AbCdEf", page="canvas-123"):
            logger.info("Exporting")  # carries doc and page
    """

    def __init__(self, **context: Any) -> None:
        self._context = context
        self._scope: Any = None

    def __enter__(self) -> Logger:
        self._scope = logger.contextualize(**self._context)
        self._scope.__enter__()
        return logger

    def __exit__(self, *exc_info: Any) -> None:
        if self._scope is not None:
            self._scope.__exit__(*exc_info)
            self._scope = None
