"""
Logging configuration for icebrowse.

All modules log through the ``icebrowse`` logger hierarchy. The level can be
set with the ICEBROWSE_LOG_LEVEL environment variable.
"""

import logging
import os
import sys
from typing import Optional


class IceBrowseLogger:
    """Centralized logger for icebrowse operations."""

    _instance: Optional[logging.Logger] = None
    _initialized = False

    @classmethod
    def get_logger(cls, name: str = "icebrowse") -> logging.Logger:
        """Get or create an icebrowse logger.

        Args:
            name: Logger name

        Returns:
            Configured logger instance
        """
        if not cls._initialized:
            cls._setup_logging()

        return logging.getLogger(name)

    @classmethod
    def _setup_logging(cls) -> None:
        """Setup logging configuration."""
        if cls._initialized:
            return

        logger = logging.getLogger("icebrowse")
        level = cls._level_from_env()
        logger.setLevel(level)
        cls._initialized = True

        # Prevent duplicate handlers
        if logger.handlers:
            return

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)

        # Format: timestamp - level - module - message
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

    @staticmethod
    def _level_from_env() -> int:
        name = os.getenv("ICEBROWSE_LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def set_level(cls, level: int) -> None:
        """Set logging level.

        Args:
            level: Logging level (logging.DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        logger = cls.get_logger()
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def get_logger(name: str = "icebrowse") -> logging.Logger:
    """Get an icebrowse logger.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    return IceBrowseLogger.get_logger(name)
