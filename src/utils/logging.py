"""
Logging for Coinlens.

Every module logs under the "coinlens" namespace, so one call to
setup_logging() controls the governor's cache/fallback messages, the
transport's request traces and the CLI output together.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER_NAME = "coinlens"

# File and verbose console: timestamps and logger names
DETAILED_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# CLI console: the message is the output
CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"

# HTTP stack loggers that would repeat every request the transport already traces
NOISY_LOGGERS = ("urllib3", "requests")

_loggers: dict[str, logging.Logger] = {}


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
    verbose: bool = False,
) -> None:
    """
    Configure the coinlens logger.

    Handlers are replaced on every call, so the CLI can call this once per
    invocation without duplicating output.

    Args:
        level: Console level (default: INFO)
        log_file: Also write DEBUG and above to this file
        verbose: Force DEBUG and show timestamps and logger names on console
    """
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        logging.Formatter(DETAILED_FORMAT if verbose else CONSOLE_FORMAT, DATE_FORMAT)
    )
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the coinlens namespace.

    Usage:
        logger = get_logger(__name__)   # "data.governor" -> "coinlens.data.governor"
        logger.warning("Serving stale value for %s", key)
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)

    return _loggers[name]
