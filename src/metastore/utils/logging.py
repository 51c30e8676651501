"""Logging helpers shared by every metastore module."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; handlers are installed by configure_logging()."""
    return logging.getLogger(name)


def configure_logging(level: int | str = logging.INFO, stream: Optional[object] = None) -> None:
    """
    Install a single stream handler on the ``metastore`` logger.

    Safe to call more than once; later calls only adjust the level.
    """
    global _configured
    root = logging.getLogger("metastore")
    root.setLevel(level)
    if _configured:
        return
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
