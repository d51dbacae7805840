
import logging
import sys

from telecom_analytics.utils.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def setup_logger(name: str) -> logging.Logger:
    """Returns a named logger writing to stdout. Safe to call repeatedly."""
    logger = logging.getLogger(name)

    # Modules call this at import time; don't stack handlers on re-import
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(settings.LOG_LEVEL)
    return logger
