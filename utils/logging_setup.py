import logging
import os
from logging.handlers import RotatingFileHandler

from utils.helpers import PROJECT_ROOT

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(config=None):
    """
    Log to a rotating file and the terminal.

    Reads the ``logging`` block of config.yaml (level, file, max_bytes,
    backup_count); every key is optional.
    """
    settings = (config or {}).get("logging") or {}
    level = getattr(logging, str(settings.get("level", "INFO")).upper(), logging.INFO)

    log_path = settings.get("file") or os.path.join("logs", "scoring.log")
    if not os.path.isabs(log_path):
        log_path = os.path.join(PROJECT_ROOT, log_path)
    os.makedirs(os.path.dirname(log_path), exist_ok=True)

    # Clear existing handlers to avoid duplicates
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=int(settings.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(settings.get("backup_count", 5)),
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler])
    logger = logging.getLogger("scoring")
    logger.setLevel(level)
    return logger
