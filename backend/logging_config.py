"""
Logging Configuration
Sets up the loggers that print the progress transcript.
"""
import logging
import sys
from typing import Optional

import config

LOGGER_NAMES = ('engine', 'maintenance', 'parsers', 'cli', 'app')


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configures the package loggers to write plain messages to stdout.

    Args:
        level: Logging level name (e.g. "DEBUG"); defaults to config.LOG_LEVEL
        log_file: Optional path to also save the transcript to a file.
    """
    level = logging.getLevelName(level or config.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    # Message-only: the transcript is meant to be read, not parsed
    formatter = logging.Formatter('%(message)s')

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # Avoid duplicate lines when the CLI is invoked more than once in a process
        if logger.hasHandlers():
            logger.handlers.clear()
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
