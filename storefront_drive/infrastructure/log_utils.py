"""Thin helpers over the tagged history logger."""

from __future__ import annotations

import inspect
import logging
from typing import Dict, Optional

from storefront_drive.logging_setup import get_logger, get_tag_for_module

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
    return get_tag_for_module(getattr(module, "__name__", "unknown"))


def log_message(msg: str, level: str = "INFO", tag: str | None = None, **kwargs) -> None:
    """
    Write ``msg`` to the history log.

    The tag defaults to one inferred from the calling module. Extra keyword
    arguments (``exc_info`` and friends) are forwarded to :mod:`logging`.
    """
    depth = kwargs.pop("_depth", 2)
    if tag is None:
        tag = _caller_tag(depth)

    logger = get_logger(tag)

    numeric_level = _LEVEL_MAP.get(str(level).upper())
    if numeric_level is None:
        logger.warning("Unknown log level '%s'; logging as INFO. Message: %s", level, msg)
        numeric_level = logging.INFO

    logger.log(numeric_level, msg, **kwargs)


def mask_secret(value: Optional[str], *, visible: int = 4) -> str:
    """Render a token for logs without leaking it."""
    if not value:
        return "<empty>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}…{value[-visible:]}"
