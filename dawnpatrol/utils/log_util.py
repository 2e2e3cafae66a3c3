"""
log_util.py: Shared logger factory.

Every module gets its logger through ``app_logger(__name__)`` so handlers and
formatting are configured in one place. An optional ``log_file`` adds a file
handler next to the console output.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "DAWNPATROL_LOG_LEVEL"


def _resolve_level(level) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def app_logger(
    name: str, log_file: Optional[str] = None, level=None
) -> logging.Logger:
    """
    Create or fetch a configured logger.

    :param name: str - Logger name, normally ``__name__``.
    :param log_file: str - Optional path of a file to also write records to.
    :param level: Optional level name or number; defaults to $DAWNPATROL_LOG_LEVEL or INFO.
    :return: logging.Logger - Logger with console (and file) handlers attached once.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file and not any(
        isinstance(h, logging.FileHandler)
        and os.path.abspath(h.baseFilename) == os.path.abspath(log_file)
        for h in logger.handlers
    ):
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
