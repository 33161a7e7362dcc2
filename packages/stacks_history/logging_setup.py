"""Logging for ``stacks_history``.

Every module logs through ``get_logger("stacks_history.<module>")`` with
``event:detail key=value`` messages (``category_read:call_failed tx_id=...``).
Nothing is printed until the CLI calls :func:`configure_logging`; embedding
applications can instead attach their own handlers to ``"stacks_history"``.

The level comes from the argument, then ``STACKS_HISTORY_LOG_LEVEL``, then
``WARNING``. Command results go to stdout and log records to stderr.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "stacks_history"
_LEVEL_ENV = "STACKS_HISTORY_LOG_LEVEL"
_CONFIGURED = False


def _level_from_name(value: str) -> int | None:
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    numeric = getattr(logging, value, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        parsed = _level_from_name(level)
        if parsed is not None:
            return parsed
    # Env override when ``level`` is absent or unrecognised
    env_val = os.getenv(_LEVEL_ENV)
    if env_val:
        parsed = _level_from_name(env_val)
        if parsed is not None:
            return parsed
    return logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach one stderr handler to the ``stacks_history`` logger.

    Later calls are no-ops, so the CLI callback can run for every command.
    ``level`` accepts a name or number; unrecognised values fall through to
    the environment and then to ``WARNING``. ``fmt`` replaces the default
    ``"%(asctime)s %(name)s %(levelname)s %(message)s"``; ``stream`` defaults to
    ``sys.stderr``.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, keeping the package silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
