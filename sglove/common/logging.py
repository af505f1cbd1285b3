import logging
import sys


def get_logger(name):
    """Creates and returns a logger with the specified name."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def set_level(level):
    """Applies a level name (e.g. "DEBUG") to every sglove logger."""
    level = getattr(logging, str(level).upper(), logging.INFO)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("sglove") and isinstance(logger, logging.Logger):
            logger.setLevel(level)
    return level
