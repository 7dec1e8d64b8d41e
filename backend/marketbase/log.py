"""
Logging configuration
"""

import logging
import sys
from typing import Optional

from .config import Settings, get_settings


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger; handlers live on the root logger set up by setup_logging()"""
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper()))
    return logger


def setup_logging(settings: Optional[Settings] = None):
    """Setup logging for the entire application"""
    settings = settings or get_settings()
    level = getattr(logging, settings.LOG_LEVEL.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    # the transport logs every request at INFO
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
