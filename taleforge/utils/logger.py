"""
Centralized logging configuration for TaleForge

Modules log through the standard library and tag records with
``extra={"component": ..., "adventure_id": ...}``. The handlers installed by
``setup_logging`` render those tags after the message, so one adventure can
be followed across the API, turn and store layers:

    12:00:01 | INFO     | taleforge.engine.lifecycle | Applied turn 3 ... [STORE adventure=4f2c]

Usage:
    from taleforge.utils.logger import get_logger, setup_logging

    setup_logging(level="INFO")  # once, at application start
    logger = get_logger(__name__)
    logger.info("Turn applied", extra={"component": "TURN", "adventure_id": aid})
"""

import logging
import sys
from pathlib import Path
from typing import Literal, Optional

# Color codes for terminal output
COLORS = {
    'DEBUG': '\033[36m',      # Cyan
    'INFO': '\033[32m',       # Green
    'WARNING': '\033[33m',    # Yellow
    'ERROR': '\033[31m',      # Red
    'CRITICAL': '\033[35m',   # Magenta
    'RESET': '\033[0m'        # Reset
}

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_LOG_FILE = "logs/taleforge.log"

# Record attributes shown in the trailing tag, in this order
CONTEXT_FIELDS = (("adventure_id", "adventure"), ("request_id", "request"), ("call_id", "call"))

_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "openai", "sqlalchemy.engine")


class ContextFilter(logging.Filter):
    """Adds ``record.context``: the component and correlation ids, if any"""

    def filter(self, record: logging.LogRecord) -> bool:
        parts = []
        component = getattr(record, "component", None)
        if component:
            parts.append(str(component))
        for attr, label in CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value:
                parts.append(f"{label}={value}")
        record.context = f" [{' '.join(parts)}]" if parts else ""
        return True


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level and logger name"""

    def format(self, record):
        # Work on a copy so file handlers sharing the record stay uncolored
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in COLORS:
            record.levelname = f"{COLORS[record.levelname]}{record.levelname}{COLORS['RESET']}"
        record.name = f"\033[94m{record.name}\033[0m"
        return super().format(record)


def _build_handler(
    handler: logging.Handler, formatter: logging.Formatter, level: int
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def setup_logging(
    level: LogLevel = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
    include_timestamp: bool = True,
    enable_file_logging: bool = False,
    enable_console_logging: bool = True,
) -> None:
    """
    Replace the root logger's handlers with TaleForge's console/file setup

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. Implies file logging.
        enable_colors: Colorize console output when stdout is a terminal
        include_timestamp: Whether to include timestamp in log messages
        enable_file_logging: Write to DEFAULT_LOG_FILE when no log_file is given
        enable_console_logging: Whether to attach the stdout handler
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    fmt = "%(levelname)-8s | %(name)s | %(message)s%(context)s"
    datefmt = None
    if include_timestamp:
        fmt = "%(asctime)s | " + fmt
        datefmt = "%Y-%m-%d %H:%M:%S"
    plain = logging.Formatter(fmt, datefmt=datefmt)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if enable_console_logging:
        colored = enable_colors and sys.stdout.isatty()
        root_logger.addHandler(
            _build_handler(
                logging.StreamHandler(sys.stdout),
                ColoredFormatter(fmt, datefmt=datefmt) if colored else plain,
                numeric_level,
            )
        )

    if log_file is None and enable_file_logging:
        log_file = DEFAULT_LOG_FILE
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(
            _build_handler(logging.FileHandler(log_file), plain, numeric_level)
        )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized at {level} level")
    if log_file:
        root_logger.info(f"Logging to file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (typically ``get_logger(__name__)``)"""
    return logging.getLogger(name)
