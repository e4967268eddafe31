# log.py
# SPDX-License-Identifier: MIT
"""Logging helpers for the ``filepulse`` package.

The package logger gets a NullHandler at import time so that embedding
applications see nothing until they opt in, either through their own logging
setup or through :func:`configure_logging`.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "DEFAULT_FORMAT",
    "get_logger",
    "resolve_level",
    "configure_logging",
    "temp_level",
]

PACKAGE_LOGGER_NAME = "filepulse"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``name``'s logger, or the package logger when ``name`` is empty."""
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def resolve_level(level: int | str) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value.

    Unknown names fall back to ``logging.INFO``.
    """
    if isinstance(level, str):
        return getattr(logging, level.strip().upper(), logging.INFO)
    return int(level)


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate: bool | None = None,
    logger_name: str = PACKAGE_LOGGER_NAME,
) -> logging.Logger:
    """Send a filepulse logger's output to a stream.

    Calling this repeatedly is safe: an existing StreamHandler is reused (and
    re-pointed at ``stream`` if its own stream was closed) instead of stacking
    duplicates.

    Args:
        level (int | str): Numeric level or level name.
        stream (IO[str] | None): Destination stream, ``sys.stderr`` by default.
        fmt (str | None): Record format; :data:`DEFAULT_FORMAT` when omitted.
        datefmt (str | None): Optional ``asctime`` format.
        propagate (bool | None): Whether records also reach ancestor loggers.
            ``None`` keeps propagation on so host handlers (and pytest's
            ``caplog``) still see them.
        logger_name (str): Logger to configure.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = get_logger(logger_name)
    logger.setLevel(resolve_level(level))
    logger.propagate = True if propagate is None else bool(propagate)

    target = stream if stream is not None else sys.stderr
    stream_handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    for handler in stream_handlers:
        if getattr(handler.stream, "closed", False):
            # setStream() would flush the closed stream first
            handler.stream = target
    if not stream_handlers:
        handler = logging.StreamHandler(target)
        handler.setFormatter(logging.Formatter(fmt=fmt or DEFAULT_FORMAT, datefmt=datefmt))
        logger.addHandler(handler)
    return logger


@contextmanager
def temp_level(level: int | str, name: str | None = None) -> Iterator[logging.Logger]:
    """Run a block with a logger temporarily set to ``level``."""
    logger = get_logger(name)
    previous = logger.level
    logger.setLevel(resolve_level(level))
    try:
        yield logger
    finally:
        logger.setLevel(previous)
