"""Shared logging helpers."""

from __future__ import annotations

import logging

_LOGGER_NAME = "survstrata"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the package namespace.

    Parameters
    ----------
    name:
        Optional child logger name, usually ``__name__``. A leading
        ``survstrata.`` prefix is not repeated.
    """
    if name is None or name == _LOGGER_NAME:
        logger_name = _LOGGER_NAME
    elif name.startswith(_LOGGER_NAME + "."):
        logger_name = name
    else:
        logger_name = f"{_LOGGER_NAME}.{name}"
    logger = logging.getLogger(logger_name)
    if not logging.getLogger(_LOGGER_NAME).handlers:
        _configure_root_logger()
    return logger


class _StandaloneFilter(logging.Filter):
    """Pass records only while the root logger has no handlers.

    Records still propagate, so once an application configures logging
    they are emitted by its handlers alone.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return not logging.getLogger().handlers


def _configure_root_logger() -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.WARNING)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    handler.addFilter(_StandaloneFilter())
    logger.addHandler(handler)


def set_level(level: int | str) -> None:
    """Set the verbosity of every survstrata logger."""
    get_logger().setLevel(level)
