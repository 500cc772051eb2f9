"""Logging setup shared by the API process and the Celery workers."""
import logging
import sys


def setup_logger(name: str = "expertiz", level: str | None = None) -> logging.Logger:
    """Configure and return the application logger.

    Args:
        name: Logger name (defaults to the package logger)
        level: Log level name; falls back to the LOG_LEVEL setting

    Returns:
        Configured logging.Logger instance
    """
    if level is None:
        from expertiz.config import get_settings

        level = get_settings().log_level

    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Avoid duplicate output when called twice (uvicorn reload, celery fork).
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(handler)
        root_logger.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
