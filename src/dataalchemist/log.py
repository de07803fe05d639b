"""Logger factory for the package.

All module loggers are children of the ``dataalchemist`` logger, which gets a
single stdout handler the first time any of them is requested. The level is
read from ``DATAALCHEMIST_LOG_LEVEL`` (defaults to WARNING).
"""

from __future__ import annotations

import logging
import os
import sys

ROOT_NAME = "dataalchemist"
LEVEL_ENV = "DATAALCHEMIST_LOG_LEVEL"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    # Prevent duplicate handlers if imported multiple times
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)
        level = os.environ.get(LEVEL_ENV, "WARNING").upper()
        root.setLevel(getattr(logging, level, logging.WARNING))
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the logger for module `name` under the package root logger."""
    _configure_root()
    if name == ROOT_NAME or name.startswith(ROOT_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_NAME}.{name}")
