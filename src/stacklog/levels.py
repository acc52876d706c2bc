"""
Ordered log levels.

Levels use the standard library's numeric values so records coming from
``logging`` and structlog compare directly against the handler threshold.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Protocol, Union, runtime_checkable

DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR

_NAMES = {
    "DEBUG": DEBUG,
    "INFO": INFO,
    "WARN": WARNING,
    "WARNING": WARNING,
    "ERROR": ERROR,
}

_LEVEL_RE = re.compile(r"^\s*([A-Za-z]+)\s*([+-]\d+)?\s*$")


@runtime_checkable
class Leveler(Protocol):
    """Anything that reports a minimum level."""

    def level(self) -> int: ...


def parse_level(text: Union[str, int]) -> int:
    """Parse a level name such as ``"info"``, ``"WARN"`` or ``"ERROR+2"``.

    Plain integers (or their string form) are accepted as-is.

    Raises:
        ValueError: if the name is not a known level.
    """
    if isinstance(text, int):
        return text
    value = text.strip()
    if re.fullmatch(r"[+-]?\d+", value):
        return int(value)
    match = _LEVEL_RE.match(value)
    if match is None or match.group(1).upper() not in _NAMES:
        raise ValueError(f"unknown log level: {text!r}")
    base = _NAMES[match.group(1).upper()]
    offset = int(match.group(2)) if match.group(2) else 0
    return base + offset


def level_name(level: int) -> str:
    """Return the canonical text for a level, with an offset if it falls between names."""
    for name, base in (("ERROR", ERROR), ("WARNING", WARNING), ("INFO", INFO), ("DEBUG", DEBUG)):
        if level >= base:
            return name if level == base else f"{name}+{level - base}"
    return f"DEBUG{level - DEBUG:+d}"


class LevelVar:
    """A level that can be changed while handlers are using it.

    Handlers read it on every ``enabled`` call, so changing it takes effect
    immediately for a handler and every handler derived from it.
    """

    def __init__(self, value: Union[str, int] = INFO) -> None:
        self._lock = threading.Lock()
        self._level = parse_level(value)

    def level(self) -> int:
        return self._level

    def set(self, value: Union[str, int]) -> None:
        level = parse_level(value)
        with self._lock:
            self._level = level

    def __str__(self) -> str:
        return level_name(self._level)

    def __repr__(self) -> str:
        return f"LevelVar({level_name(self._level)})"


def resolve(leveler: Union[Leveler, str, int, None]) -> int:
    """Resolve a configured threshold to a number; ``None`` means INFO."""
    if leveler is None:
        return INFO
    if isinstance(leveler, Leveler):
        return leveler.level()
    return parse_level(leveler)
