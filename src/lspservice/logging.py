"""Logging for lspservice.

Everything logs through the ``lspservice`` logger tree (modules use
``logging.getLogger(__name__)``). Levels come from ``logging.level`` or,
taking precedence, ``logging.verbose``:

    0 error   1 warning   2 info   3 verbose   4 trace

Output goes to ``logging.file`` (or ``$LSPSERVICE_LOG``) when set, and to
stderr otherwise.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lspservice.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("lspservice")

_initialized = False

_LEVEL_NAMES = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Index is the --verbose count; anything past the end is TRACE
_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    """Emits "12:00:00 warning: ..." instead of "WARNING"."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Numeric level for a logging config; INFO when nothing is set."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[min(max(config.verbose, 0), len(_VERBOSITY) - 1)]
    if config.level:
        return _LEVEL_NAMES.get(config.level.upper(), logging.INFO)
    return logging.INFO


def uvicorn_log_level(config: LoggingConfig | None) -> str:
    """uvicorn's own log level: chatty only when we are debugging."""
    return "info" if resolve_level(config) <= logging.DEBUG else "warning"


def _open_handler(log_path: str | None) -> logging.Handler:
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            print(f"[lspservice] Failed to open log file: {e}", file=sys.stderr)
    return logging.StreamHandler(sys.stderr)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach the lspservice handler. Only the first call has an effect."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    log_path = config.file if config and config.file else os.environ.get("LSPSERVICE_LOG")

    handler = _open_handler(log_path)
    handler.setLevel(level)
    handler.setFormatter(
        _LowercaseLevelFormatter("%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.setLevel(level)
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The package logger, or a named child of it (e.g., "bridge")."""
    return logger.getChild(name) if name else logger
