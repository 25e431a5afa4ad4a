"""
Logging utility module for Snapshot Service.
"""
import logging
import os
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Chatty third-party loggers, capped unless debugging.
QUIET_LOGGERS = ("websockets", "aiohttp.access", "asyncio")


def configure_logging(
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for the service.

    Args:
        level: Logging level
        format_string: Log format string
        log_file: Optional file receiving a copy of the log
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace whatever an earlier call (or the interpreter) installed
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    quiet_level = level if level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
