"""
Front-end logger and logger propagation.

``Logger`` is a thin front-end over a ``Handler``: it performs the level check
before building anything, captures the call site, and hands the record over.

A process-wide default logger is built lazily from ``LoggingSettings`` the
first time it is needed. A per-request logger can be attached to the current
``contextvars`` context with ``with_context`` and fetched with ``from_context``;
without one, ``from_context`` returns the default.
"""

from __future__ import annotations

import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from . import levels
from .config import LoggingSettings
from .handler import Handler, HandlerOptions
from .record import Caller, Record
from .values import Attr, as_attrs


class Logger:
    """Structured logger writing through a ``Handler``.

    Positional arguments after the message must be ``Attr`` values (for
    example from ``stacklog.name`` or ``stacklog.label``); keyword arguments
    become plain attributes.

    Example:
        ```python
        logger = Logger(Handler(sys.stdout, HandlerOptions(project_id="my-project")))
        logger = logger.bind(stacklog.name("api"), service="users")
        logger.info("request received", stacklog.request(request), user_id=42)
        ```
    """

    def __init__(self, handler: Handler):
        self._handler = handler

    @property
    def handler(self) -> Handler:
        return self._handler

    def enabled(self, level: int) -> bool:
        return self._handler.enabled(level)

    def bind(self, *attrs: Attr, **kwargs: Any) -> "Logger":
        """Return a logger that adds these attributes to every record."""
        return Logger(self._handler.with_attrs(as_attrs(attrs, kwargs)))

    def group(self, name: str) -> "Logger":
        """Return a logger that nests all further attributes under ``name``."""
        return Logger(self._handler.with_group(name))

    def log(self, level: int, msg: str, *attrs: Attr, _depth: int = 1, **kwargs: Any) -> None:
        if not self._handler.enabled(level):
            return
        record = Record(
            message=msg,
            level=level,
            time=datetime.now(timezone.utc),
            caller=Caller.capture(_depth) if self._handler.options.add_source else None,
            attrs=as_attrs(attrs, kwargs),
        )
        self._handler.handle(record)

    def debug(self, msg: str, *attrs: Attr, **kwargs: Any) -> None:
        self.log(levels.DEBUG, msg, *attrs, _depth=2, **kwargs)

    def info(self, msg: str, *attrs: Attr, **kwargs: Any) -> None:
        self.log(levels.INFO, msg, *attrs, _depth=2, **kwargs)

    def warning(self, msg: str, *attrs: Attr, **kwargs: Any) -> None:
        self.log(levels.WARNING, msg, *attrs, _depth=2, **kwargs)

    def error(self, msg: str, *attrs: Attr, **kwargs: Any) -> None:
        self.log(levels.ERROR, msg, *attrs, _depth=2, **kwargs)


# =============================================================================
# Default and context-carried loggers
# =============================================================================

_default: Optional[Logger] = None
_default_lock = threading.Lock()

_current: ContextVar[Optional[Logger]] = ContextVar("stacklog_logger", default=None)


def new_default(settings: Optional[LoggingSettings] = None) -> Logger:
    """Build a logger from environment settings."""
    settings = settings or LoggingSettings()
    stream = sys.stdout if settings.stream == "stdout" else sys.stderr
    return Logger(Handler(stream, HandlerOptions.from_settings(settings)))


def get_default() -> Logger:
    """Return the process-wide logger, building it on first use."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = new_default()
    return _default


def set_default(logger: Optional[Logger]) -> None:
    """Replace the process-wide logger. ``None`` rebuilds it from settings on next use."""
    global _default
    with _default_lock:
        _default = logger


def from_context() -> Logger:
    """Return the logger attached to the current context, or the default one."""
    logger = _current.get()
    return logger if logger is not None else get_default()


@contextmanager
def with_context(logger: Logger) -> Iterator[Logger]:
    """Attach ``logger`` to the current context for the duration of the block."""
    token = _current.set(logger)
    try:
        yield logger
    finally:
        _current.reset(token)
