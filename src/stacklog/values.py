"""
Attribute values.

A ``Value`` is a small tagged union: the ``Kind`` says how the raw payload is
interpreted and every consumer dispatches on the kind explicitly instead of
inspecting the raw object. ``Value.of`` infers the kind for plain Python
objects, which is how keyword arguments from any front-end enter the pipeline.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, NamedTuple, Tuple

# =============================================================================
# Value
# =============================================================================


class Kind(Enum):
    STRING = "string"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    BOOL = "bool"
    DURATION = "duration"
    TIME = "time"
    ANY = "any"
    GROUP = "group"
    LAZY = "lazy"


class Value(NamedTuple):
    kind: Kind
    raw: Any

    @classmethod
    def of(cls, obj: Any) -> "Value":
        """Wrap a plain Python object, inferring its kind.

        Mappings with string keys become groups, so ``{"a": {"b": 1}}`` nests
        the same way ``group("a", int_("b", 1))`` does.
        """
        if isinstance(obj, Value):
            return obj
        if isinstance(obj, Attr):
            return cls(Kind.GROUP, (obj,))
        # bool is a subclass of int, check it first
        if isinstance(obj, bool):
            return cls(Kind.BOOL, obj)
        if isinstance(obj, int):
            return cls(Kind.INT, obj)
        if isinstance(obj, float):
            return cls(Kind.FLOAT, obj)
        if isinstance(obj, str):
            return cls(Kind.STRING, obj)
        if isinstance(obj, timedelta):
            return cls(Kind.DURATION, obj)
        if isinstance(obj, datetime):
            return cls(Kind.TIME, obj)
        if isinstance(obj, Mapping) and all(isinstance(key, str) for key in obj):
            return cls(Kind.GROUP, tuple(Attr(key, cls.of(item)) for key, item in obj.items()))
        return cls(Kind.ANY, obj)

    def resolve(self) -> "Value":
        """Evaluate a lazy value. Non-lazy values are returned unchanged."""
        value = self
        while value.kind is Kind.LAZY:
            value = Value.of(value.raw())
        return value


class Attr(NamedTuple):
    key: str
    value: Value


# =============================================================================
# Constructors
# =============================================================================


def string(key: str, value: str) -> Attr:
    return Attr(key, Value(Kind.STRING, value))


def int_(key: str, value: int) -> Attr:
    return Attr(key, Value(Kind.INT, int(value)))


def uint(key: str, value: int) -> Attr:
    if value < 0:
        raise ValueError(f"uint attribute {key!r} must not be negative")
    return Attr(key, Value(Kind.UINT, int(value)))


def float_(key: str, value: float) -> Attr:
    return Attr(key, Value(Kind.FLOAT, float(value)))


def bool_(key: str, value: bool) -> Attr:
    return Attr(key, Value(Kind.BOOL, bool(value)))


def duration(key: str, value: timedelta) -> Attr:
    return Attr(key, Value(Kind.DURATION, value))


def time(key: str, value: datetime) -> Attr:
    return Attr(key, Value(Kind.TIME, value))


def any_(key: str, value: Any) -> Attr:
    return Attr(key, Value.of(value))


def lazy(key: str, fn: Callable[[], Any]) -> Attr:
    """An attribute whose value is computed by ``fn`` each time a record is handled."""
    return Attr(key, Value(Kind.LAZY, fn))


def group(key: str, *attrs: Attr, **kwargs: Any) -> Attr:
    """Collect attributes under ``key``.

    Positional arguments must be ``Attr``; keyword arguments are wrapped with
    ``Value.of`` and appended in order.
    """
    return Attr(key, Value(Kind.GROUP, as_attrs(attrs, kwargs)))


def as_attrs(attrs: Iterable[Any] = (), kwargs: Dict[str, Any] | None = None) -> Tuple[Attr, ...]:
    """Normalize positional ``Attr`` and keyword arguments into a tuple of ``Attr``."""
    result = []
    for attr in attrs:
        if not isinstance(attr, Attr):
            raise TypeError(f"expected Attr, got {type(attr).__name__}")
        result.append(attr)
    for key, value in (kwargs or {}).items():
        result.append(Attr(key, Value.of(value)))
    return tuple(result)


def attrs_from_items(items: Iterable[Tuple[str, Any]]) -> Tuple[Attr, ...]:
    """Convert key/value pairs from a foreign front-end into attributes.

    A value that already is an ``Attr`` is kept with its own key, which is how
    reserved attributes travel through ``extra=`` or structlog keyword arguments.
    """
    result = []
    for key, value in items:
        if isinstance(value, Attr):
            result.append(value)
        elif isinstance(value, Value):
            result.append(Attr(key, value))
        else:
            result.append(Attr(key, Value.of(value)))
    return tuple(result)


def resolve_attrs(attrs: Iterable[Attr]) -> Tuple[Attr, ...]:
    """Evaluate every lazy value once, descending into groups."""
    resolved = []
    for attr in attrs:
        value = attr.value.resolve()
        if value.kind is Kind.GROUP:
            value = Value(Kind.GROUP, resolve_attrs(value.raw))
        resolved.append(Attr(attr.key, value))
    return tuple(resolved)


# =============================================================================
# Coercion
# =============================================================================


def nanoseconds(value: timedelta) -> int:
    return (value.days * 86_400 + value.seconds) * 1_000_000_000 + value.microseconds * 1_000


def format_duration(value: timedelta) -> str:
    """Render a duration the way the protobuf JSON mapping does, e.g. ``"1.5s"``."""
    micros = value // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    seconds, fraction = divmod(abs(micros), 1_000_000)
    if fraction:
        return f"{sign}{seconds}.{fraction:06d}".rstrip("0") + "s"
    return f"{sign}{seconds}s"


def format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def to_primitive(value: Value) -> Any:
    """Convert a value into a tree of JSON-compatible objects.

    Durations become integer nanoseconds. Opaque values are returned untouched
    for the serializer to deal with. Unknown kinds become ``None``.
    """
    kind = value.kind
    if kind in (Kind.STRING, Kind.INT, Kind.UINT, Kind.FLOAT, Kind.BOOL, Kind.TIME, Kind.ANY):
        return value.raw
    if kind is Kind.DURATION:
        return nanoseconds(value.raw)
    if kind is Kind.GROUP:
        return group_to_dict(value.raw)
    if kind is Kind.LAZY:
        return to_primitive(value.resolve())
    return None


def group_to_dict(attrs: Iterable[Attr]) -> Dict[str, Any]:
    """Build a mapping from attributes. The first occurrence of a key wins; groups merge."""
    result: Dict[str, Any] = {}
    for attr in attrs:
        value = attr.value.resolve()
        if value.kind is Kind.GROUP and not attr.key:
            # an unnamed group is inlined into its parent
            merge_into(result, group_to_dict(value.raw))
            continue
        merge_into(result, {attr.key: to_primitive(value)})
    return result


def merge_into(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, item in source.items():
        if key not in target:
            target[key] = item
        elif isinstance(target[key], dict) and isinstance(item, dict):
            merge_into(target[key], item)


def stringify(value: Value) -> str:
    """Render a scalar value as label text."""
    value = value.resolve()
    kind = value.kind
    if kind is Kind.STRING:
        return value.raw
    if kind is Kind.BOOL:
        return "true" if value.raw else "false"
    if kind is Kind.DURATION:
        return format_duration(value.raw)
    if kind is Kind.TIME:
        return format_time(value.raw)
    if kind is Kind.GROUP:
        return str(group_to_dict(value.raw))
    return str(value.raw)
