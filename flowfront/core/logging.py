"""
Logging Configuration
Provides structured logging for the engine and the service layer.
"""
import logging
import sys
from typing import Optional

from flowfront.core.config import settings


def _level_from_settings() -> int:
    level = logging.getLevelName(settings.log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(name: str = "flowfront", level: Optional[int] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (typically module name)
        level: Logging level (defaults to LOG_LEVEL, then INFO)

    Returns:
        Configured logger instance
    """
    if level is None:
        level = _level_from_settings()

    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)

    return logger


# Pre-configured loggers for each service
transform_logger = setup_logging("flowfront.transform")
extract_logger = setup_logging("flowfront.extract")
workflows_logger = setup_logging("flowfront.workflows")
webhooks_logger = setup_logging("flowfront.webhooks")
gateway_logger = setup_logging("flowfront.gateway")
