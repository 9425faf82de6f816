"""Logging helpers for the Anvil system."""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

from anvil.config import config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None, log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Install the stderr handler, plus a file handler when a log file is set.

    Args:
        level: Level name; defaults to config.log_level
        log_file: Log file path; defaults to config.log_file
    """
    level_name = level or config.log_level
    log_file = log_file if log_file is not None else config.log_file
    numeric_level = getattr(logging, level_name.upper(), logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    file_error = None
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            file_error = exc

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)
    if file_error is not None:
        _logger.warning("Failed to open log file %s: %s", log_file, file_error)
