"""Logging configuration for the agent corpus backend."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import LoggingConfig


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """
    Configure the package logger from a LoggingConfig.

    Installs a console handler and/or a size-rotated file handler on the
    ``agentcorpus`` logger. Calling it again replaces previously installed
    handlers instead of stacking them.

    Args:
        config: Logging configuration

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("agentcorpus")
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.log_format)

    if config.enable_console_logging:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if config.enable_file_logging and config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
