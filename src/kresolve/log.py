"""Logging setup for embedding applications."""

from __future__ import annotations

import logging
import os
import sys

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def configure_logging(level: str | None = None) -> None:
    """Set up stdlib logging for the ``kresolve`` logger hierarchy.

    *level* wins over the ``KRESOLVE_LOG`` env var. With neither set, logging
    stays unconfigured (silent).
    """
    requested = (level or os.environ.get("KRESOLVE_LOG", "")).upper()
    if not requested:
        return
    if requested not in _VALID_LEVELS:
        print(
            f"WARNING: invalid log level '{requested}', "
            f"expected one of {', '.join(sorted(_VALID_LEVELS))}; defaulting to INFO",
            file=sys.stderr,
        )
    logging.basicConfig(
        level=logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("kresolve").setLevel(getattr(logging, requested, logging.INFO))
