"""Logging setup for the billing CLI and services.

Records from the application namespaces (``src.*`` modules and the ``billing``
CLI logger) go to stdout and to a log file. The level comes from LOG_LEVEL
(default INFO). SQLAlchemy's engine logger is held at WARNING.
"""

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Namespaces owned by this project
APP_LOGGERS = ("src", "billing")
QUIET_LOGGERS = ("sqlalchemy.engine",)


def get_log_level(default: str = "INFO") -> int:
    """Get logging level from the LOG_LEVEL environment variable.

    Unknown names fall back to the default.
    """
    level_str = os.getenv("LOG_LEVEL", default).upper()
    return LOG_LEVEL_MAP.get(level_str, LOG_LEVEL_MAP[default])


def _build_handlers(log_path: Path, level: int) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_path, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(log_file: str = "logs/billing.log") -> logging.Logger:
    """Attach stdout and file handlers to the application loggers.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        log_file: Path to log file; parent directories are created

    Returns:
        The "billing" logger used by the CLI
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    level = get_log_level()
    handlers = _build_handlers(log_path, level)

    for name in APP_LOGGERS:
        app_logger = logging.getLogger(name)
        for handler in app_logger.handlers[:]:
            handler.close()
            app_logger.removeHandler(handler)
        app_logger.setLevel(level)
        app_logger.propagate = False
        for handler in handlers:
            app_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("billing")


__all__ = ["APP_LOGGERS", "get_log_level", "setup_logging"]
