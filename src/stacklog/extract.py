"""
Reserved-key extraction and label flattening.

Duplicate reserved keys are resolved the same way everywhere:

- ``name`` and ``operation``: the first well-formed attribute wins.
- ``request`` and ``response``: the first well-formed request is merged with
  the first well-formed response, response fields taking precedence.
- ``labels``: every labels group is flattened; the first value of a dotted key wins.

Attributes that use a reserved key with the wrong value shape are dropped
without raising. ``error`` stays in the payload, rendered as text.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple
from urllib.parse import quote

from .attributes import (
    ERROR_KEY,
    LABEL_KEY,
    NAME_KEY,
    OPERATION_KEY,
    REQUEST_KEY,
    RESERVED_KEYS,
    RESPONSE_KEY,
    http_request_of,
    operation_of,
)
from .model import HttpRequest, Operation
from .values import Attr, Kind, Value, stringify

# characters url path segment escaping leaves alone, besides the unreserved set
_PATH_SEGMENT_SAFE = "$&+:=@"


class Extracted(NamedTuple):
    name: str
    http_request: Optional[HttpRequest]
    operation: Optional[Operation]
    labels: Dict[str, str]
    rest: Tuple[Attr, ...]


def path_escape(value: str) -> str:
    return quote(value, safe=_PATH_SEGMENT_SAFE)


def resource_path(project_id: str, *keys: str) -> str:
    return "/".join(("projects", project_id) + keys)


def flatten_labels(attrs: Iterable[Attr], prefix: str = "") -> Dict[str, str]:
    """Flatten nested groups into ``{"a.b.c": "value"}``."""
    labels: Dict[str, str] = {}
    for attr in attrs:
        path = f"{prefix}.{attr.key}" if prefix else attr.key
        value = attr.value.resolve()
        if value.kind is Kind.GROUP:
            for key, text in flatten_labels(value.raw, path).items():
                labels.setdefault(key, text)
        else:
            labels.setdefault(path, stringify(value))
    return labels


def _error_value(value: Value) -> Optional[Value]:
    value = value.resolve()
    if value.kind is Kind.STRING:
        return value
    if value.kind is Kind.ANY and isinstance(value.raw, BaseException):
        return Value(Kind.STRING, str(value.raw))
    return None


def extract(attrs: Iterable[Attr], project_id: str = "") -> Extracted:
    """Split reserved attributes from the ones that become payload fields."""
    log_name = ""
    name_seen = False
    request: Optional[HttpRequest] = None
    response: Optional[HttpRequest] = None
    operation: Optional[Operation] = None
    labels: Dict[str, str] = {}
    rest: List[Attr] = []

    for attr in attrs:
        key = attr.key
        if key not in RESERVED_KEYS:
            rest.append(attr)
            continue

        value = attr.value.resolve()
        if key == NAME_KEY:
            if not name_seen and value.kind is Kind.STRING:
                name_seen = True
                if project_id:
                    log_name = resource_path(project_id, "logs", path_escape(value.raw))
        elif key == LABEL_KEY:
            if value.kind is Kind.GROUP:
                for path, text in flatten_labels(value.raw).items():
                    labels.setdefault(path, text)
        elif key == REQUEST_KEY:
            if request is None:
                request = http_request_of(value)
        elif key == RESPONSE_KEY:
            if response is None:
                response = http_request_of(value)
        elif key == OPERATION_KEY:
            if operation is None:
                operation = operation_of(value)
        elif key == ERROR_KEY:
            text = _error_value(value)
            if text is not None:
                rest.append(Attr(key, text))

    http_request = request
    if response is not None:
        http_request = (request or HttpRequest()).merge(response)

    return Extracted(
        name=log_name,
        http_request=http_request,
        operation=operation,
        labels=labels,
        rest=tuple(rest),
    )
