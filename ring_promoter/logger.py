import logging

from .models import Verbosity

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
ROOT_LOGGER = "ring_promoter"

VERBOSITY_LEVELS = {
    Verbosity.MINIMAL: logging.WARNING,
    Verbosity.NORMAL: logging.INFO,
    Verbosity.DETAILED: logging.DEBUG,
}


def level_for(verbosity):
    return VERBOSITY_LEVELS[Verbosity(verbosity)]


def setup_logging(level="INFO", log_file=None):
    """Console output at ``level``; ``log_file`` is appended to at DEBUG"""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG)
    return logger


def get_logger(name="engine"):
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
