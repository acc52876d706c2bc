"""
Standard library ``logging`` bridge.

Routes ``logging.LogRecord`` objects through a stacklog ``Handler`` so that
third-party libraries logging through the standard library produce the same
Cloud Logging entries as application code.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..attributes import ERROR_KEY
from ..handler import Handler
from ..record import Caller, Record
from ..values import Attr, attrs_from_items, string

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class CloudLoggingHandler(logging.Handler):
    """Logging handler that writes records as Cloud Logging entries.

    Fields passed through ``extra=`` become payload fields. A value that is an
    ``Attr`` (for example ``stacklog.request(req)``) keeps its own key, so
    reserved attributes can be supplied as ``extra={"http": stacklog.request(req)}``.

    Example:
        ```python
        handler = CloudLoggingHandler(Handler(sys.stdout, HandlerOptions(project_id="my-project")))
        logging.getLogger().addHandler(handler)
        ```
    """

    def __init__(self, handler: Optional[Handler] = None, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._handler = handler or Handler()

    @property
    def handler(self) -> Handler:
        return self._handler

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if not self._handler.enabled(record.levelno):
                return
            self._handler.handle(self.to_record(record))
        except Exception:
            self.handleError(record)

    def to_record(self, record: logging.LogRecord) -> Record:
        """Translate a ``LogRecord``; the call site comes from the record itself."""
        extras = [
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_LOGRECORD_ATTRS and not key.startswith("_")
        ]
        attrs: list[Attr] = [string("logger", record.name)]
        attrs.extend(attrs_from_items(extras))

        if record.exc_info and record.exc_info[0] is not None:
            attrs.append(string(ERROR_KEY, self._exception_text(record)))

        return Record(
            message=record.getMessage(),
            level=record.levelno,
            time=datetime.fromtimestamp(record.created, tz=timezone.utc),
            caller=Caller(record.pathname, record.lineno, f"{record.module}.{record.funcName}"),
            attrs=tuple(attrs),
        )

    def _exception_text(self, record: logging.LogRecord) -> str:
        formatter = self.formatter or logging.Formatter()
        return formatter.formatException(record.exc_info)
