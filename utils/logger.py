"""
Application logger

Every module logs through the single ``logger`` exported here so that level
and format are configured in one place (LOG_LEVEL in config).
"""

import logging
import sys

from config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str = "ipa_store", level: str = settings.LOG_LEVEL) -> logging.Logger:
    """Create (or return) the application logger with a single stream handler"""
    log = logging.getLogger(name)

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)

    log.setLevel(getattr(logging, level.upper(), logging.INFO))
    log.propagate = False
    return log


logger = setup_logger()
