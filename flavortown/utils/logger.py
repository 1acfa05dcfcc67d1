"""Logging helpers shared by every flavortown module."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_ROOT_LOGGER = "flavortown"
_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger nested under the ``flavortown`` namespace."""
    if not name.startswith(_ROOT_LOGGER):
        name = f"{_ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(level: str = "INFO", log_dir: str | None = None) -> logging.Logger:
    """Install console (and optional file) handlers on the package logger.

    Safe to call more than once; existing handlers are replaced.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path / "flavortown.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
