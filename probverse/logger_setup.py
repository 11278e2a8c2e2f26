"""
Logging setup for runners.

Library modules only create module-level loggers under the 'probverse'
namespace; handlers are attached here, once, by whoever drives the tick loop.
"""

import logging
import os
from typing import Optional

from .constants import LOGGER_NAME
from .data_types import LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None, run_id: Optional[str] = None) -> logging.Logger:
    """
    Configure the dedicated 'probverse' logger (not the root logger).

    Outputs to the console, and additionally to <log_dir>/<run_id>/simulation.log
    when config.log_dir is set. Calling again replaces the previous handlers.

    Args:
        config: Logging section of the universe config (defaults if None)
        run_id: Subdirectory name for the log file (defaults to 'latest')

    Returns:
        The configured logger
    """
    config = config or LoggingConfig()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.level)

    # Keep third-party chatter out of our handlers and ours out of root
    logger.propagate = False

    formatter = logging.Formatter(config.format)

    # Clear existing handlers to avoid duplication if this function is called again
    if logger.hasHandlers():
        logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file = None
    if config.log_dir:
        log_dir = os.path.join(config.log_dir, run_id or 'latest')
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, 'simulation.log')

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info(f"Logging initialized. Level: {config.level}. Log file: {log_file or 'none'}")
    return logger
