"""Logging for SiteAudit.

Every crawl module writes to the ``SiteAudit`` logger::

    from site_audit.logger import logger
    logger.info("Crawl started")

Nothing is configured on import. The CLI calls :func:`init_logging` once per
invocation; console output goes to stderr because stdout carries the JSON report.
Per-entry results are logged at :func:`level_for_status`, so ``--log-level WARNING``
leaves only failing URLs and errors.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteAudit"

_LevelT = Union[int, str]

_MAX_LOG_BYTES: Final[int] = 5 * 1024 * 1024
_LOG_BACKUPS: Final[int] = 3


def level_for_status(status_code: Optional[int]) -> int:
    """INFO for 1xx-3xx responses, WARNING for 4xx/5xx or a missing response."""
    if status_code is None or status_code >= 400:
        return logging.WARNING
    return logging.INFO


def _console_handler(fmt: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _file_handler(file: Path | str, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=str(file),
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the project logger.

    Parameters
    ----------
    level
        Numeric or textual logging level (e.g. ``"DEBUG"``).
    log_file
        Also write to this file, rotated at 5 MiB with three backups.
    log_format
        Format string for :class:`logging.Formatter`.
    replace_handlers
        Close and drop handlers installed by an earlier call.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)

    if replace_handlers:
        for handler in list(lg.handlers):
            lg.removeHandler(handler)
            handler.close()

    lg.addHandler(_console_handler(log_format))
    if log_file is not None:
        lg.addHandler(_file_handler(log_file, log_format))

    # the root logger would print every record a second time
    lg.propagate = False
    return lg


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Configure logging for one CLI run."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


logger: logging.Logger = logging.getLogger(LOGGER_NAME)

__all__ = ["logger", "configure", "init_logging", "level_for_status", "DEFAULT_FORMAT", "LOGGER_NAME"]
