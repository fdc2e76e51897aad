"""Runtime logging helpers."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "console"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "console": "{level} | {extra[turn]} | {message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[turn]} | {message}",
}
_CONFIGURED_PROFILE: LogProfile | None = None
_current_turn: ContextVar[str] = ContextVar("whisperer_turn", default="-")


def current_turn() -> str:
    return _current_turn.get()


@contextmanager
def bind_turn(turn_id: str) -> Iterator[None]:
    """Tag every log record emitted in this context with ``turn_id``."""
    token = _current_turn.set(turn_id)
    try:
        yield
    finally:
        _current_turn.reset(token)


def _build_console_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def _inject_context(record: loguru.Record) -> None:
    record["extra"]["turn"] = current_turn()


def configure_logging(*, profile: LogProfile = "default", level: str = "INFO") -> None:
    """Configure process-level logging once."""
    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    logger.remove()
    logger.configure(patcher=_inject_context)
    if profile == "console":
        logger.add(
            _build_console_handler(),
            level=level.upper(),
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=level.upper(),
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    _CONFIGURED_PROFILE = profile
