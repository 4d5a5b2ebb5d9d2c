"""Logging setup for chat-central.

Every module logs through a child of the ``chat_central`` logger obtained
with ``get_logger``. Only the CLI configures output, once, on that root.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER_NAME = "chat_central"
DEFAULT_LOG_DIR = Path.home() / "chat-central" / "logs"
LOG_FILE_NAME = "chat-central.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = False,
) -> logging.Logger:
    """Send chat-central logs to a file and optionally to stderr.

    Handlers installed by an earlier call are closed and replaced, so the
    latest configuration wins and records are never written twice.

    Args:
        log_dir: Directory for chat-central.log (defaults to ~/chat-central/logs/)
        level: Logging level for the whole chat_central hierarchy
        console: Whether to also log to stderr

    Returns:
        The configured ``chat_central`` logger
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [
        logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``chat_central.<name>`` logger, e.g. "adapters.gemini"."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
