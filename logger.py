import os
import sys
import logging
from logging.handlers import RotatingFileHandler
from config import LOG_DIR, LOG_FILE, LOG_LEVEL

FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def log_file_path() -> str:
    return os.path.join(LOG_DIR, LOG_FILE)


def get_logger(name: str) -> logging.Logger:
    """
    Per-module logger for the data layer. Everything at LOG_LEVEL goes to the
    rotating file; warnings and above are echoed to stderr for the CLI.
    """
    os.makedirs(LOG_DIR, exist_ok=True)

    logger = logging.getLogger(f"ops.{name}")
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    logger.propagate = False

    fmt = logging.Formatter(FORMAT)
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(
            log_file_path(),
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.WARNING)
        console.setFormatter(fmt)
        logger.addHandler(console)

    return logger
