import logging
import sys

LOGGER_NAME = "xthi"


def resolve_level(level: str) -> int:
    """Numeric level for a level name; unknown names fall back to WARNING."""
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def setup_logger(level: str = "WARNING") -> logging.Logger:
    """
    Configure the global xthi logger.
    Writes to stderr so the table on stdout stays clean.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_level(level))
    if logger.handlers:
        return logger

    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(sh)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
