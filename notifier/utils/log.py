# notifier/utils/log.py
# Minimal, reusable logging setup used across feed-notifier.
# Provides get_logger(name) that configures a singleton console logger and
# optional rotating file logging when LOG_TO_FILE=true.

from __future__ import annotations
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_DEFAULT_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

ROOT_NAME = "notifier"

_INITIALIZED = False


def _init_root() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    lvl = getattr(logging, level, None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    root = logging.getLogger()
    root.setLevel(lvl)

    # Clean existing handlers in case this is reloaded in notebooks/tests
    for h in list(root.handlers):
        root.removeHandler(h)

    ch = logging.StreamHandler()
    ch.setLevel(lvl)
    ch.setFormatter(logging.Formatter(_DEFAULT_FMT, datefmt=_DEFAULT_DATEFMT))
    root.addHandler(ch)

    if os.getenv("LOG_TO_FILE", "false").lower() == "true":
        log_dir = Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            log_dir / "notifier.log",
            maxBytes=int(os.getenv("LOG_MAX_BYTES", "1048576")),
            backupCount=int(os.getenv("LOG_BACKUPS", "5")),
        )
        fh.setLevel(lvl)
        fh.setFormatter(logging.Formatter(_DEFAULT_FMT, datefmt=_DEFAULT_DATEFMT))
        root.addHandler(fh)

    _INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with consistent formatting/level.

    Usage:
        from .utils.log import get_logger
        logger = get_logger("notifier")
    """
    _init_root()
    return logging.getLogger(name)


def connector_logger(connector: str) -> logging.Logger:
    """Logger scoped to one configured connector, e.g. ``notifier.progress``."""
    return get_logger(f"{ROOT_NAME}.{connector}")
