"""Package logger"""

import logging
import sys

from .config import Config


def setup_logger(name: str = "tablerunner") -> logging.Logger:
    """Create the package logger with a single stream handler"""
    log = logging.getLogger(name)
    
    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-7s | %(message)s",
                datefmt="%H:%M:%S"
            )
        )
        log.addHandler(handler)
    
    log.setLevel(Config.get_log_level().upper())
    return log


logger = setup_logger()
