# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Logger Configuration
======================================
One rotating log file plus a filtered console.

- File: everything at LOG_LEVEL (DEBUG by default, WARNING in production)
- Console: INFO+ in development, ERROR+ in production
- Long-polling timeouts from telebot are dropped from the console; they
  happen every few minutes and the library reconnects on its own

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import logging
import logging.handlers
import sys
from pathlib import Path

import config

# Messages telebot logs while reconnecting after an idle long poll
_POLLING_NOISE = ('Read timed out', 'Connection aborted', 'RemoteDisconnected')


class ConsoleFilter(logging.Filter):
    """
    Console gate.
    - Production: only ERROR, CRITICAL
    - Dev: INFO and above
    - Either way: no telebot reconnect chatter
    """
    def __init__(self, min_level: int):
        super().__init__()
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno < self.min_level:
            return False
        if record.name.startswith('TeleBot'):
            message = record.getMessage()
            return not any(noise in message for noise in _POLLING_NOISE)
        return True


def _file_handler(level: int) -> logging.Handler:
    log_path = Path(config.LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_path),
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=config.LOG_FORMAT_DETAILED, datefmt=config.LOG_DATE_FORMAT))
    return handler


def _console_handler(min_level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ConsoleFilter(min_level))
    handler.setFormatter(logging.Formatter(fmt=config.LOG_FORMAT_SIMPLE))
    return handler


def setup_logging() -> logging.Logger:
    """
    Configure the root logger and return the application logger.

    Returns:
        logging.Logger: 'AzkarBot', shared by every module
    """
    production = config.ENV.lower() == 'production'
    file_level = logging.getLevelName(config.LOG_LEVEL) if config.LOG_LEVEL else (
        logging.WARNING if production else logging.DEBUG
    )
    if not isinstance(file_level, int):
        file_level = logging.DEBUG

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Re-running setup (tests, reloads) must not stack handlers
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(_file_handler(file_level))
    root.addHandler(_console_handler(logging.ERROR if production else logging.INFO))

    # APScheduler logs every job run at INFO; urllib3 logs every request at DEBUG
    logging.getLogger('apscheduler').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.INFO)

    app_logger = logging.getLogger('AzkarBot')
    app_logger.setLevel(logging.DEBUG)
    app_logger.debug(
        f"Logging ready ({'production' if production else 'development'}, "
        f"file {config.LOG_FILE} at {logging.getLevelName(file_level)})"
    )
    return app_logger


logger = setup_logging()
