"""The "spendwise" logger.

Every module logs through ``get_logger()``. ``setup_logging`` is called once
by the CLI; it writes a dated log file under ``config.log_dir`` and echoes
messages to the console.
"""

import logging
from datetime import date
from config import Config

LOGGER_NAME = "spendwise"

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _with_format(handler: logging.Handler, level: str, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(config: Config) -> logging.Logger:
    """Configure the spendwise logger from config.

    Safe to call more than once: previous handlers are replaced.

    Args:
        config: Supplies log_level and log_dir.

    Returns:
        The configured logger.
    """
    config.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = config.log_dir / f"{LOGGER_NAME}-{date.today().isoformat()}.log"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.log_level)
    logger.handlers.clear()
    logger.addHandler(
        _with_format(logging.FileHandler(log_file), config.log_level, FILE_FORMAT)
    )
    logger.addHandler(
        _with_format(logging.StreamHandler(), config.log_level, CONSOLE_FORMAT)
    )
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
