"""
The handler: turns records into Cloud Logging entries on a stream.

A handler is immutable once built. ``with_attrs`` and ``with_group`` return
new handlers that share the stream, its write lock and the options, so a
handler and all of its children can be used from any number of threads.
"""

from __future__ import annotations

import copy
import io
import sys
import threading
from typing import Any, Iterable, Optional, TextIO, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

from . import levels
from .config import LoggingSettings
from .entry import assemble, current_span_context, render
from .attributes import RESERVED_KEYS
from .extract import extract
from .levels import LevelVar
from .model import Entry
from .record import Record
from .values import Attr, Kind, Value, resolve_attrs


class HandlerOptions(BaseModel):
    """Handler configuration.

    Attributes:
        project_id: Google Cloud project. Empty disables log names and trace correlation.
        level: Minimum level. A ``LevelVar`` can be adjusted at runtime.
        add_source: Attach the caller's file, line and function to every entry.
        add_indent: Pretty-print the JSON output.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    project_id: str = ""
    level: Union[int, LevelVar] = levels.INFO
    add_source: bool = False
    add_indent: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return levels.parse_level(value)
        return value

    @classmethod
    def from_settings(cls, settings: LoggingSettings) -> "HandlerOptions":
        return cls(
            project_id=settings.project_id or "",
            level=LevelVar(settings.level.value),
            add_source=settings.add_source,
            add_indent=settings.add_indent,
        )


def _is_binary(stream: Any) -> bool:
    if isinstance(stream, io.TextIOBase):
        return False
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return True
    return "b" in getattr(stream, "mode", "")


class Handler:
    """Cloud Logging handler writing one JSON document per record.

    Args:
        stream: Text or binary stream to write to (default: stderr).
        options: Handler options (default: ``HandlerOptions()``).
    """

    def __init__(self, stream: Optional[Union[TextIO, Any]] = None, options: Optional[HandlerOptions] = None):
        self._stream = stream if stream is not None else sys.stderr
        self._binary = _is_binary(self._stream)
        self._lock = threading.Lock()
        self._options = options or HandlerOptions()
        self._attrs: Tuple[Attr, ...] = ()
        self._groups: Tuple[str, ...] = ()

    @property
    def options(self) -> HandlerOptions:
        return self._options

    @property
    def attrs(self) -> Tuple[Attr, ...]:
        return self._attrs

    @property
    def groups(self) -> Tuple[str, ...]:
        return self._groups

    def level(self) -> int:
        return levels.resolve(self._options.level)

    def enabled(self, level: int) -> bool:
        return level >= self.level()

    def entry(self, record: Record) -> Entry:
        """Assemble the entry for a record without writing it."""
        attrs = resolve_attrs(self._nest(record.attrs) + self._attrs)
        extracted = extract(attrs, self._options.project_id)
        return assemble(
            record,
            extracted,
            project_id=self._options.project_id,
            add_source=self._options.add_source,
            span_context=current_span_context() if self._options.project_id else None,
        )

    def handle(self, record: Record) -> None:
        """Assemble, encode and write a record.

        Raises:
            EncodingError: if the entry cannot be encoded; nothing is written.
            OSError: whatever the stream raises on write.
        """
        data = render(self.entry(record), indent=self._options.add_indent)
        with self._lock:
            if self._binary:
                self._stream.write(data)
            else:
                self._stream.write(data.decode("utf-8"))
            flush = getattr(self._stream, "flush", None)
            if flush is not None:
                flush()

    def with_attrs(self, attrs: Iterable[Attr]) -> "Handler":
        attrs = tuple(attrs)
        if not attrs:
            return self
        child = self._clone()
        child._attrs = self._attrs + self._nest(attrs)
        return child

    def with_group(self, name: str) -> "Handler":
        """Nest every attribute added from now on under ``name``."""
        if not name:
            return self
        child = self._clone()
        child._groups = self._groups + (name,)
        return child

    def _nest(self, attrs: Tuple[Attr, ...]) -> Tuple[Attr, ...]:
        if not attrs or not self._groups:
            return attrs
        # reserved keys describe the entry itself and stay at the top level
        reserved = tuple(attr for attr in attrs if attr.key in RESERVED_KEYS)
        nested = tuple(attr for attr in attrs if attr.key not in RESERVED_KEYS)
        if not nested:
            return reserved
        for group in reversed(self._groups):
            nested = (Attr(group, Value(Kind.GROUP, nested)),)
        return reserved + nested

    def _clone(self) -> "Handler":
        # shallow: the stream, lock and options are shared, the tuples are immutable
        return copy.copy(self)

    def __repr__(self) -> str:
        return f"Handler(project_id={self._options.project_id!r}, level={levels.level_name(self.level())})"
