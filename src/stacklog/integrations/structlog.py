"""
structlog bridge.

``CloudLoggingProcessor`` is the last processor of a structlog chain: it turns
the event dict into a record, hands it to the stacklog handler and drops the
event so nothing else is written. ``configure_logging`` wires structlog and
the standard library root logger to one handler.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

import structlog
from structlog.processors import CallsiteParameter
from structlog.typing import EventDict, Processor, WrappedLogger

from ..attributes import ERROR_KEY
from ..config import LoggingSettings
from ..handler import Handler, HandlerOptions
from ..levels import DEBUG, ERROR, INFO, WARNING
from ..record import Caller, Record
from ..values import attrs_from_items, string
from .stdlib import CloudLoggingHandler

_METHOD_LEVELS = {
    "debug": DEBUG,
    "info": INFO,
    "msg": INFO,
    "warn": WARNING,
    "warning": WARNING,
    "error": ERROR,
    "exception": ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

# keys consumed by the bridge itself
_CALLSITE_KEYS = ("pathname", "lineno", "func_name", "module")
_CONSUMED_KEYS = frozenset({"event", "level", "timestamp", "exception", "exc_info", *_CALLSITE_KEYS})


def level_of(method_name: str, event_dict: EventDict) -> int:
    name = str(event_dict.get("level", method_name)).lower()
    return _METHOD_LEVELS.get(name, INFO)


# =============================================================================
# Processors
# =============================================================================


def add_logger_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add logger name to log event."""
    name = event_dict.pop("_name", None)
    if name:
        event_dict["logger"] = name
    return event_dict


class LevelFilter:
    """Drop events the handler is not enabled for, before any other work is done."""

    def __init__(self, handler: Handler):
        self._handler = handler

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        if not self._handler.enabled(level_of(method_name, event_dict)):
            raise structlog.DropEvent
        return event_dict


class CloudLoggingProcessor:
    """Final processor writing the event through a stacklog ``Handler``.

    ``event`` becomes the message, call-site keys added by
    ``CallsiteParameterAdder`` become the source location and a formatted
    ``exception`` becomes the ``error`` field. Every other key is an attribute;
    values that already are ``Attr`` keep their own key.
    """

    def __init__(self, handler: Handler):
        self._handler = handler

    @property
    def handler(self) -> Handler:
        return self._handler

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        self._handler.handle(self.to_record(method_name, event_dict))
        raise structlog.DropEvent

    def to_record(self, method_name: str, event_dict: EventDict) -> Record:
        timestamp = event_dict.get("timestamp")
        if not isinstance(timestamp, datetime):
            timestamp = datetime.now(timezone.utc)

        caller = None
        if "pathname" in event_dict and "lineno" in event_dict:
            function = event_dict.get("func_name", "")
            module = event_dict.get("module")
            caller = Caller(
                event_dict["pathname"],
                event_dict["lineno"],
                f"{module}.{function}" if module else function,
            )

        attrs = attrs_from_items((k, v) for k, v in event_dict.items() if k not in _CONSUMED_KEYS)
        exception = event_dict.get("exception")
        if exception:
            attrs += (string(ERROR_KEY, str(exception)),)

        return Record(
            message=str(event_dict.get("event", "")),
            level=level_of(method_name, event_dict),
            time=timestamp,
            caller=caller,
            attrs=attrs,
        )


# =============================================================================
# Configuration Logic
# =============================================================================


def build_processors(handler: Handler) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        LevelFilter(handler),
        add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if handler.options.add_source:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                [
                    CallsiteParameter.PATHNAME,
                    CallsiteParameter.LINENO,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.MODULE,
                ]
            )
        )
    processors.append(CloudLoggingProcessor(handler))
    return processors


def configure_logging(
    *,
    settings: Optional[LoggingSettings] = None,
    stream: Optional[TextIO] = None,
    handler: Optional[Handler] = None,
) -> Handler:
    """
    Route structlog and the standard library root logger through one handler.

    Args:
        settings: Settings to build the handler from (default: read from the environment)
        stream: Output stream, overriding ``settings.stream``
        handler: A ready handler; ``settings`` and ``stream`` are ignored when given

    Returns:
        The handler every log call now goes through.
    """
    if handler is None:
        settings = settings or LoggingSettings()
        if stream is None:
            stream = sys.stdout if settings.stream == "stdout" else sys.stderr
        handler = Handler(stream, HandlerOptions.from_settings(settings))

    structlog.configure(
        processors=build_processors(handler),
        context_class=dict,
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [CloudLoggingHandler(handler)]
    # levels are gated by the handler
    root_logger.setLevel(logging.NOTSET)

    return handler


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger instance."""
    return structlog.get_logger(_name=name or "root")
