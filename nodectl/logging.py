"""Logging configuration for the nodectl package."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug_mode: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure console and file logging for a run.

    Args:
        debug_mode: Log DEBUG messages to the console
        log_file: File that receives every message at DEBUG level (optional)

    Returns:
        The root nodectl logger
    """
    logger = logging.getLogger("nodectl")
    logger.setLevel(logging.DEBUG)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG if debug_mode else logging.INFO)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(handler)

        if log_file:
            try:
                log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    filename=log_file,
                    maxBytes=10 * 1024 * 1024,
                    backupCount=5
                )
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
                logger.addHandler(file_handler)
            except OSError as e:
                logger.warning(f"Unable to write log file {log_file}: {e}")

    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('paramiko').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logger
