"""
The record handed from a front-end to the handler.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, replace
from datetime import datetime
from types import FrameType
from typing import NamedTuple, Optional, Tuple

from .values import Attr


class Caller(NamedTuple):
    """Where a log call was made, captured by the front-end at call time."""

    file: str
    line: int
    function: str

    @classmethod
    def from_frame(cls, frame: FrameType) -> "Caller":
        module = frame.f_globals.get("__name__", "")
        function = frame.f_code.co_name
        return cls(
            file=frame.f_code.co_filename,
            line=frame.f_lineno,
            function=f"{module}.{function}" if module else function,
        )

    @classmethod
    def capture(cls, depth: int = 1) -> Optional["Caller"]:
        """Capture the frame ``depth`` levels above the caller of this function."""
        try:
            frame = sys._getframe(depth + 1)
        except ValueError:
            return None
        return cls.from_frame(frame)


@dataclass(frozen=True)
class Record:
    """One log event. Never mutated once built; derive copies instead."""

    message: str
    level: int
    time: Optional[datetime] = None
    caller: Optional[Caller] = None
    attrs: Tuple[Attr, ...] = ()

    def with_attrs(self, *attrs: Attr) -> "Record":
        return replace(self, attrs=self.attrs + tuple(attrs))
