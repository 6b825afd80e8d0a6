"""
Logging configuration for the storefront API.

Provides a package logger; its level comes from `Settings.log_level` via
`setup_logging`.
"""
import logging
import sys

logger = logging.getLogger("storefront")
logger.setLevel(logging.INFO)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

logger.propagate = False


def setup_logging(level: str) -> None:
    """Set the package log level, e.g. "DEBUG" or "WARNING"."""
    logger.setLevel(level.upper())


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (appended to 'storefront')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"storefront.{name}")
    return logger
