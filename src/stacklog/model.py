"""
Wire model for Cloud Logging structured entries.

The nested messages (``HttpRequest``, ``Operation``, ``SourceLocation``) are
pydantic models whose aliases follow the LogEntry JSON field names, so
``to_wire`` produces exactly what the logging agent expects. int64 fields are
emitted as strings, as in the protobuf JSON mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from .values import format_duration


class Severity(str, Enum):
    DEFAULT = "DEFAULT"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class WireModel(BaseModel):
    """Base for messages that are spliced into an entry as nested JSON objects."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump with external field names, leaving out zero values."""
        return self.model_dump(mode="json", by_alias=True, exclude_defaults=True)


class HttpRequest(WireModel):
    """HTTP request metadata for an entry.

    Built from a request, a response, or both merged together.
    """

    request_method: str = ""
    request_url: str = ""
    request_size: int = 0
    status: int = 0
    response_size: int = 0
    user_agent: str = ""
    remote_ip: str = ""
    server_ip: str = ""
    referer: str = ""
    latency: Optional[timedelta] = None
    protocol: str = ""

    @field_serializer("request_size", "response_size", when_used="json")
    def _int64(self, value: int) -> str:
        return str(value)

    @field_serializer("latency", when_used="json")
    def _duration(self, value: Optional[timedelta]) -> Optional[str]:
        return None if value is None else format_duration(value)

    def merge(self, other: "HttpRequest") -> "HttpRequest":
        """Return a copy with every non-zero field of ``other`` applied on top."""
        return self.model_copy(update=other.model_dump(exclude_defaults=True))


class Operation(WireModel):
    """One step of a multi-entry operation, correlated by id and producer."""

    id: str = ""
    producer: str = ""
    first: bool = False
    last: bool = False


class SourceLocation(WireModel):
    file: str = ""
    line: int = 0
    function: str = ""

    @field_serializer("line", when_used="json")
    def _int64(self, value: int) -> str:
        return str(value)


@dataclass(frozen=True)
class Entry:
    """A fully assembled log entry, ready to be rendered.

    ``payload`` is a ``dict`` for a JSON payload or a ``str`` for a text payload.
    """

    payload: Union[Dict[str, Any], str]
    severity: Severity = Severity.DEFAULT
    log_name: str = ""
    timestamp: Optional[datetime] = None
    labels: Dict[str, str] = field(default_factory=dict)
    http_request: Optional[HttpRequest] = None
    operation: Optional[Operation] = None
    source_location: Optional[SourceLocation] = None
    trace: str = ""
    span_id: str = ""
    trace_sampled: bool = False

    @property
    def json_payload(self) -> Optional[Dict[str, Any]]:
        return self.payload if isinstance(self.payload, dict) else None

    @property
    def text_payload(self) -> Optional[str]:
        return self.payload if isinstance(self.payload, str) else None
