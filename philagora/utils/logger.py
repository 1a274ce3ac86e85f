"""
Logging setup for the Philagora pipeline.

Every module logger lives under the "philagora" namespace and shares one
colourised console handler; the CLI adds a plain file handler on start-up.
"""

import logging
from typing import Optional

ROOT_LOGGER_NAME = "philagora"


class CustomFormatter(logging.Formatter):
    """Console formatter that colours each record by level."""
    grey = "\x1b[37;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    dark_grey = "\x1b[30;1m"
    reset = "\x1b[0m"
    fmt = '[%(levelname)s] %(asctime)s - %(name)s - %(message)s'

    FORMATS = {
        logging.DEBUG: dark_grey + fmt + reset,
        logging.INFO: grey + fmt + reset,
        logging.WARNING: yellow + fmt + reset,
        logging.ERROR: red + fmt + reset,
        logging.CRITICAL: bold_red + fmt + reset
    }

    def format(self, record):
        return logging.Formatter(self.FORMATS.get(record.levelno, self.fmt)).format(record)


def _root_logger() -> logging.Logger:
    log = logging.getLogger(ROOT_LOGGER_NAME)
    if not log.handlers:
        # create console handler with a higher log level
        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG)
        ch.setFormatter(CustomFormatter())
        log.addHandler(ch)
        log.setLevel(logging.INFO)
    return log


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger inside the philagora namespace.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        logging.Logger: A logger that propagates to the shared console handler.
    """
    _root_logger()
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_file_logging(log_file: str, level: int = logging.INFO) -> None:
    """
    Add a plain-text file handler and set the pipeline log level.

    Args:
        log_file: Path of the log file to append to.
        level: Logging level for both console and file output.
    """
    log = _root_logger()
    log.setLevel(level)

    for handler in log.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename.endswith(log_file):
            return

    fh = logging.FileHandler(log_file, encoding='utf-8')
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(CustomFormatter.fmt))
    log.addHandler(fh)
