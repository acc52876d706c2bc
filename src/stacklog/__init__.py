"""
stacklog: structured logging for Google Cloud Logging.

Turns structured log records into Cloud Logging JSON entries (severity,
labels, HTTP request, operation, source location and trace correlation) and
writes one line per record to a stream, where the logging agent picks it up.

Front-ends:
- ``stacklog.Logger``: a minimal structured logger over a ``Handler``
- ``stacklog.integrations.stdlib``: a ``logging.Handler``
- ``stacklog.integrations.structlog``: a structlog processor and ``configure_logging``

Library: orjson for serialization, pydantic for the wire model and settings.
"""

from .attributes import (
    error,
    label,
    name,
    operation_continue,
    operation_end,
    operation_start,
    request,
    response,
    response_writer_info,
)
from .config import LoggingSettings, LogLevel
from .exceptions import EncodingError, StackLogError
from .handler import Handler, HandlerOptions
from .levels import DEBUG, ERROR, INFO, WARNING, LevelVar
from .logger import Logger, from_context, get_default, set_default, with_context
from .model import Entry, HttpRequest, Operation, Severity, SourceLocation
from .record import Caller, Record
from .values import (
    Attr,
    Kind,
    Value,
    any_,
    bool_,
    duration,
    float_,
    group,
    int_,
    lazy,
    string,
    time,
    uint,
)

__all__ = [
    "Attr",
    "Caller",
    "DEBUG",
    "ERROR",
    "EncodingError",
    "Entry",
    "Handler",
    "HandlerOptions",
    "HttpRequest",
    "INFO",
    "Kind",
    "LevelVar",
    "LogLevel",
    "Logger",
    "LoggingSettings",
    "Operation",
    "Record",
    "Severity",
    "SourceLocation",
    "StackLogError",
    "Value",
    "WARNING",
    "any_",
    "bool_",
    "duration",
    "error",
    "float_",
    "from_context",
    "get_default",
    "group",
    "int_",
    "label",
    "lazy",
    "name",
    "operation_continue",
    "operation_end",
    "operation_start",
    "request",
    "response",
    "response_writer_info",
    "set_default",
    "string",
    "time",
    "uint",
    "with_context",
]
