import logging

from .core.config import get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging() -> logging.Logger:
    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    # Configure root once
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logger = logging.getLogger("securein")
    logger.setLevel(level)

    # Avoid duplicate console handlers
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        ch.setLevel(logger.level)
        logger.addHandler(ch)

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("securein")
    return base.getChild(name) if name else base


logger = setup_logging()
