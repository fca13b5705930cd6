"""Logging for optistate.

The core never prints. Restarts, numerical failures and driver progress go
to loggers under the ``optistate`` namespace, each with its own handler and
``propagate`` switched off so host applications see nothing unless they ask.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# Settings applied to every logger, including ones created later.
_settings: dict = {"level": logging.WARNING, "format": _FORMAT, "stream": None}

_loggers: dict[str, logging.Logger] = {}


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def _make_handler() -> logging.Handler:
    handler = logging.StreamHandler(_settings["stream"] or sys.stderr)
    handler.setLevel(_settings["level"])
    handler.setFormatter(logging.Formatter(_settings["format"]))
    return handler


def _apply(logger: logging.Logger) -> None:
    logger.setLevel(_settings["level"])
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.addHandler(_make_handler())
    logger.propagate = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the cached logger for ``name`` inside the ``optistate`` namespace.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Line search accepted step")
    """
    if name is None:
        name = "optistate"
    if name != "optistate" and not name.startswith("optistate."):
        name = f"optistate.{name}"

    logger = _loggers.get(name)
    if logger is None:
        logger = logging.getLogger(name)
        if not logger.handlers:
            _apply(logger)
        _loggers[name] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Change the level of every optistate logger, keeping their handlers."""
    level = _coerce_level(level)
    _settings["level"] = level
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Route optistate logging to ``stream`` (stderr by default) at ``level``.

    Handlers of existing loggers are replaced; loggers created afterwards use
    the same level, format and stream.
    """
    _settings["level"] = _coerce_level(level)
    _settings["format"] = format_string or _FORMAT
    _settings["stream"] = stream
    for logger in _loggers.values():
        _apply(logger)


__all__ = ["configure_logging", "get_logger", "set_log_level"]
