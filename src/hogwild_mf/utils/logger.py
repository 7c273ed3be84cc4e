import logging
import os
import sys

LOG_LEVEL_ENV = "HOGWILD_MF_LOG_LEVEL"


def setup_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """
    Sets up and returns a logger writing to stdout if no handlers exist.

    Parameters:
        name (str): Name of the logger.
        level (int | str | None): Logging level. Falls back to the
            `HOGWILD_MF_LOG_LEVEL` environment variable, then INFO.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or os.environ.get(LOG_LEVEL_ENV, "INFO").upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False

    return logger
