"""
Logging setup shared by the server (``run.py``, ``voicechat.main``) and the
voice client CLI.

Everything logs through the single ``voicechat`` logger. Records go to
stdout and to ``logs/voicechat.log``, rotated at 10 MB. The client's log pane
mirrors its entries into the same logger, so one file holds both the
negotiation trace and the channel events of a session.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from voicechat.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "voicechat.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _file_handler(formatter: logging.Formatter) -> RotatingFileHandler:
    LOG_DIR.mkdir(exist_ok=True)
    handler = RotatingFileHandler(LOG_FILE, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT)
    handler.setFormatter(formatter)
    return handler


def configure_logging(level: str = None):
    """
    (Re)configure the ``voicechat`` logger.

    Safe to call more than once: the server module and the launcher both
    call it, and each call replaces the previous handlers.

    Args:
        level: Level name such as ``"debug"``; defaults to ``LOG_LEVEL``

    Returns:
        logging.Logger: The application logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # A read-only working directory still gets console logging
    try:
        logger.addHandler(_file_handler(formatter))
    except OSError as e:
        logger.warning(f"Could not open {LOG_FILE}, logging to console only: {e}")

    logger.propagate = False

    logger.debug(f"Logging configured at {logging.getLevelName(logger.level)}")
    return logger
