"""
Logging setup for the bridge process.

Everything logs through the ``call_bridge`` logger. ``configure_logging`` is
called once at startup with the level taken from ``BridgeSettings`` and sends
records to stdout and to a size-rotated file under ``logs/``.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from callbridge.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_FILE = Path("logs") / "call_bridge.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def configure_logging(level: str = "INFO", log_file: Optional[Path] = LOG_FILE) -> logging.Logger:
    """
    Attach console and rotating file handlers to the bridge logger.

    Args:
        level: Log level name, already validated by BridgeSettings
        log_file: Rotating log file path, or None for console output only

    Returns:
        logging.Logger: The configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.getLevelName(level.upper()))

    # Reconfiguring replaces handlers instead of stacking them
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(log_file, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not set up file logging at {log_file}: {e}")

    logger.propagate = False

    logger.info(f"Logging configured at level {logging.getLevelName(logger.level)}")
    return logger
