from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_NAME = "taskdeck"


def default_log_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".taskdeck.log")


def setup_logging(log_path: Optional[str] = None, log_level: str = "ERROR") -> logging.Logger:
    """Send the ``taskdeck`` loggers to a rotating file.

    Existing handlers are dropped first so the CLI ``--log-level`` always
    controls what reaches the file.
    """
    log_path = log_path or default_log_path()
    logger = logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    # logger passes everything; the handler filters by level
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    d = os.path.dirname(os.path.abspath(log_path))
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)
    fh = RotatingFileHandler(log_path, maxBytes=2000000, backupCount=2, encoding='utf-8')
    lvl = getattr(logging, str(log_level).upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.ERROR
    fh.setLevel(lvl)
    fh.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
    logger.addHandler(fh)
    return logger
