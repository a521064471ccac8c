"""Utility helpers for writing cycle logs with rotation and tagging support."""

from __future__ import annotations

import inspect
import logging
from typing import Dict

from ojt_cycle.logging_setup import get_logger, get_tag_for_module

_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _caller_tag(depth: int) -> str:
    frame = inspect.stack()[depth]
    module = inspect.getmodule(frame[0])
    module_name = getattr(module, "__name__", "unknown")
    return get_tag_for_module(module_name)


def log_message(msg: str, level: str = "INFO", tag: str | None = None, **kwargs) -> None:
    """
    Log a message to the rotating history log with optional tagging.

    Accepts **kwargs for compatibility with standard logging arguments
    like exc_info=True.
    """
    wrapped = kwargs.pop("_wrapped", False)
    if tag is None:
        tag = _caller_tag(3 if wrapped else 2)

    logger = get_logger(tag)

    level_name = str(level).upper()
    numeric_level = _LEVEL_MAP.get(level_name)
    if numeric_level is None:
        logger.warning(
            "Received unknown log level '%s'; defaulting to INFO. Message: %s",
            level,
            msg,
        )
        numeric_level = logging.INFO

    logger.log(numeric_level, msg, **kwargs)


# ----------------------------------------------------------------------
# Convenience wrappers, all forward **kwargs
# ----------------------------------------------------------------------

def debug(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, level="DEBUG", tag=tag, _wrapped=True, **kwargs)


def info(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, level="INFO", tag=tag, _wrapped=True, **kwargs)


def warn(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, level="WARNING", tag=tag, _wrapped=True, **kwargs)


def error(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, level="ERROR", tag=tag, _wrapped=True, **kwargs)


def critical(msg: str, tag: str | None = None, **kwargs):
    log_message(msg, level="CRITICAL", tag=tag, _wrapped=True, **kwargs)
