"""
Logging configuration for the Messaging System API.

Every record is stamped with the deployment environment
(``Settings.environment``) so that output from the development, test
and production databases can be told apart once it is collected in one
place.  Handlers installed here are tagged with their destination;
calling ``setup_logging`` again only adds destinations that are not
attached yet, and leaves handlers installed by others (uvicorn, pytest)
alone.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(environment)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_TARGET = "<console>"


class EnvironmentFilter(logging.Filter):
    """Attach ``record.environment`` so the formatter can print it."""

    def __init__(self, environment: str) -> None:
        super().__init__()
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.environment = self.environment
        return True


def _installed_targets(logger: logging.Logger) -> set:
    return {getattr(h, "messaging_target", None) for h in logger.handlers}


def _attach(logger: logging.Logger, handler: logging.Handler, target: str, environment: str) -> None:
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(EnvironmentFilter(environment))
    handler.messaging_target = target
    logger.addHandler(handler)


def setup_logging(config: Settings) -> Optional[str]:
    """Configure the root logger from ``config``.

    ``config.log_level`` is a level name (case insensitive; unknown
    names mean ``INFO``).  A console handler is always attached; when
    ``config.log_file`` is set a UTF-8 file handler is added too, its
    path resolved against the current working directory.

    Returns the resolved log file path, or ``None`` without one.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    installed = _installed_targets(root)
    if CONSOLE_TARGET not in installed:
        _attach(root, logging.StreamHandler(), CONSOLE_TARGET, config.environment)

    if not config.log_file:
        return None
    log_path = str(Path(config.log_file).resolve())
    if log_path not in installed:
        _attach(root, logging.FileHandler(log_path, encoding="utf-8"), log_path, config.environment)
    return log_path
