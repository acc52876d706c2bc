"""
Entry assembly and serialization.

``assemble`` turns a record plus the extracted reserved data into an
``Entry``; ``render`` encodes it to a single newline-terminated JSON document.
Encoding happens entirely in memory so a failure never leaves a partial line
on the sink.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional, Tuple, Union

import orjson
from opentelemetry import trace
from opentelemetry.trace import SpanContext
from pydantic import BaseModel

from . import levels
from .exceptions import EncodingError
from .extract import Extracted, resource_path
from .model import Entry, Severity, SourceLocation, WireModel
from .record import Record
from .values import Attr, group_to_dict, merge_into, nanoseconds

MESSAGE_KEY = "message"

_PREFIX = "logging.googleapis.com/"

_SEVERITIES = {
    levels.DEBUG: Severity.DEBUG,
    levels.INFO: Severity.INFO,
    levels.WARNING: Severity.WARNING,
    levels.ERROR: Severity.ERROR,
}


# =============================================================================
# Assembly
# =============================================================================


def severity_for(level: int) -> Severity:
    """Map a level onto a severity. Anything off the four named levels is DEFAULT."""
    return _SEVERITIES.get(level, Severity.DEFAULT)


def current_span_context() -> Optional[SpanContext]:
    """Return the active OpenTelemetry span context, if it is valid."""
    span_context = trace.get_current_span().get_span_context()
    if span_context is not None and span_context.is_valid:
        return span_context
    return None


def build_payload(message: str, attrs: Tuple[Attr, ...]) -> Union[Dict[str, Any], str]:
    """Build a JSON payload from the leftover attributes, or fall back to text."""
    fields = group_to_dict(attrs) if attrs else {}
    if not fields:
        return message
    payload: Dict[str, Any] = {MESSAGE_KEY: message}
    merge_into(payload, fields)
    return payload


def assemble(
    record: Record,
    extracted: Extracted,
    *,
    project_id: str = "",
    add_source: bool = False,
    span_context: Optional[SpanContext] = None,
) -> Entry:
    location = None
    if add_source and record.caller is not None:
        location = SourceLocation(
            file=record.caller.file,
            line=record.caller.line,
            function=record.caller.function,
        )

    trace_path, span_id, sampled = "", "", False
    if project_id and span_context is not None and span_context.is_valid:
        trace_path = resource_path(project_id, "traces", trace.format_trace_id(span_context.trace_id))
        span_id = trace.format_span_id(span_context.span_id)
        sampled = span_context.trace_flags.sampled

    return Entry(
        payload=build_payload(record.message, extracted.rest),
        severity=severity_for(record.level),
        log_name=extracted.name,
        timestamp=record.time,
        labels=extracted.labels,
        http_request=extracted.http_request,
        operation=extracted.operation,
        source_location=location,
        trace=trace_path,
        span_id=span_id,
        trace_sampled=sampled,
    )


# =============================================================================
# Serialization
# =============================================================================


def _is_zero(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, dict)):
        return len(value) == 0
    return False


def _default(obj: Any) -> Any:
    if isinstance(obj, WireModel):
        return obj.to_wire()
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    if isinstance(obj, BaseException):
        return str(obj)
    if isinstance(obj, timedelta):
        return nanoseconds(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def to_wire(entry: Entry) -> Dict[str, Any]:
    """Lay the entry out with its external field names, dropping zero values."""
    fields = {
        "severity": entry.severity.value,
        "httpRequest": entry.http_request,
        "timestamp": entry.timestamp,
        MESSAGE_KEY: entry.payload,
        _PREFIX + "labels": entry.labels,
        _PREFIX + "operation": entry.operation,
        _PREFIX + "sourceLocation": entry.source_location,
        _PREFIX + "spanId": entry.span_id,
        _PREFIX + "trace": entry.trace,
        _PREFIX + "trace_sampled": entry.trace_sampled,
    }

    wire: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, WireModel):
            value = value.to_wire()
        if _is_zero(value):
            continue
        wire[key] = value
    return wire


def render(entry: Entry, *, indent: bool = False) -> bytes:
    """Encode an entry as one newline-terminated JSON document.

    Raises:
        EncodingError: if any field cannot be represented as JSON.
    """
    option = orjson.OPT_APPEND_NEWLINE | orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC
    if indent:
        option |= orjson.OPT_INDENT_2
    try:
        return orjson.dumps(to_wire(entry), default=_default, option=option)
    except (orjson.JSONEncodeError, TypeError) as exc:
        raise EncodingError(
            f"cannot encode log entry: {exc}",
            details={"severity": entry.severity.value},
        ) from exc
