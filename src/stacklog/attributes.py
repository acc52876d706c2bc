"""
Constructors for attributes with reserved keys.

Each helper returns a single ``Attr`` whose key and value shape the handler
recognizes. Values are immutable, so the same attribute can be reused across
log calls and threads.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from .model import HttpRequest, Operation
from .values import Attr, Kind, Value, group, string

NAME_KEY = "name"
ERROR_KEY = "error"
LABEL_KEY = "labels"
REQUEST_KEY = "request"
RESPONSE_KEY = "response"
OPERATION_KEY = "operation"

RESERVED_KEYS = frozenset({NAME_KEY, ERROR_KEY, LABEL_KEY, REQUEST_KEY, RESPONSE_KEY, OPERATION_KEY})


def name(value: str) -> Attr:
    """Set the log name. The handler escapes it when building the resource path."""
    return string(NAME_KEY, value)


def label(*attrs: Attr, **kwargs: Any) -> Attr:
    """Collect attributes as entry labels. Nested groups become dotted keys."""
    return group(LABEL_KEY, *attrs, **kwargs)


def error(exc: Union[BaseException, str]) -> Attr:
    return string(ERROR_KEY, str(exc))


# =============================================================================
# HTTP
# =============================================================================


def _header(headers: Any, key: str) -> str:
    if headers is None:
        return ""
    return headers.get(key) or ""


def _content_length(headers: Any) -> int:
    value = _header(headers, "content-length").strip()
    return int(value) if value.isascii() and value.isdigit() else 0


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def request(req: Any) -> Attr:
    """Describe an incoming HTTP request.

    Accepts a Starlette ``Request`` or anything exposing ``method``, ``url``
    and ``headers`` (``client`` and ``scope`` are optional). Forwarding headers
    set by proxies take precedence over the connection details.
    """
    headers = getattr(req, "headers", None)
    parts = urlsplit(str(req.url))

    scheme = _header(headers, "x-forwarded-proto") or parts.scheme or "http"
    host = _header(headers, "x-forwarded-host") or _header(headers, "host") or parts.netloc
    url = urlunsplit((scheme, host, parts.path, parts.query, parts.fragment))

    remote = _header(headers, "x-forwarded-for").split(",")[0].strip()
    if not remote:
        client = getattr(req, "client", None)
        remote = getattr(client, "host", "") or ""

    scope = getattr(req, "scope", None) or {}
    server = scope.get("server") or ("", None)
    server_ip = server[0] if server[0] and _is_ip(server[0]) else ""

    value = HttpRequest(
        protocol=f"HTTP/{scope.get('http_version', '1.1')}",
        request_method=req.method,
        request_url=url,
        request_size=_content_length(headers),
        remote_ip=remote,
        server_ip=server_ip,
        referer=_header(headers, "referer"),
        user_agent=_header(headers, "user-agent"),
    )
    return Attr(REQUEST_KEY, Value(Kind.ANY, value))


def response(resp: Any) -> Attr:
    """Describe an HTTP response (Starlette, httpx or similar)."""
    size = _content_length(getattr(resp, "headers", None))
    if not size:
        body = getattr(resp, "body", None)
        size = len(body) if isinstance(body, (bytes, bytearray)) else 0

    value = HttpRequest(status=int(resp.status_code), response_size=size)
    return Attr(RESPONSE_KEY, Value(Kind.ANY, value))


def response_writer_info(writer: Any) -> Attr:
    """Describe what a response writer has sent so far.

    The writer must expose ``status_code`` and ``content_length`` (and
    optionally ``latency``), as ``stacklog.middleware.ResponseRecorder`` does.
    Any other object yields an empty description.
    """
    value = HttpRequest()
    if hasattr(writer, "status_code") and hasattr(writer, "content_length"):
        latency = getattr(writer, "latency", None)
        value = HttpRequest(
            status=int(writer.status_code or 0),
            response_size=int(writer.content_length or 0),
            latency=latency,
        )
    return Attr(RESPONSE_KEY, Value(Kind.ANY, value))


# =============================================================================
# Operations
# =============================================================================


def _operation(id: str, producer: str, *, first: bool, last: bool) -> Attr:
    value = Operation(id=id, producer=producer, first=first, last=last)
    return Attr(OPERATION_KEY, Value(Kind.ANY, value))


def operation_start(id: str, producer: str) -> Attr:
    """Mark the first entry of an operation."""
    return _operation(id, producer, first=True, last=False)


def operation_continue(id: str, producer: str) -> Attr:
    return _operation(id, producer, first=False, last=False)


def operation_end(id: str, producer: str) -> Attr:
    """Mark the last entry of an operation."""
    return _operation(id, producer, first=False, last=True)


def http_request_of(value: Value) -> Optional[HttpRequest]:
    value = value.resolve()
    if value.kind is Kind.ANY and isinstance(value.raw, HttpRequest):
        return value.raw
    return None


def operation_of(value: Value) -> Optional[Operation]:
    value = value.resolve()
    if value.kind is Kind.ANY and isinstance(value.raw, Operation):
        return value.raw
    return None
