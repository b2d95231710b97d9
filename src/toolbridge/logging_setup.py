"""
Configuration du logging (un seul handler stderr pour les loggers `toolbridge.*`).
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure le logger racine du package.

    Args:
        level: Niveau de log (DEBUG, INFO, WARNING...)

    Returns:
        Le logger `toolbridge`
    """
    logger = logging.getLogger("toolbridge")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False
    return logger
