"""
ASGI request logging.

``RequestLoggingMiddleware`` logs the life of each HTTP request as a
correlated operation: the request description is bound once, the start and
end entries share an operation id, and the final entry carries the status and
size actually sent, as recorded by ``ResponseRecorder``. The request logger is
attached to the context so application code can reach it via
``stacklog.from_context()``.
"""

from __future__ import annotations

import fnmatch
import time
import uuid
from collections.abc import Callable, Coroutine
from datetime import timedelta
from typing import Any, Optional

from starlette.requests import Request

from .attributes import error, operation_end, operation_start, request, response_writer_info
from .logger import Logger, from_context, with_context

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


class ResponseRecorder:
    """Records the status, body size and latency of one response."""

    def __init__(self) -> None:
        self.status_code = 0
        self.content_length = 0
        self.latency: Optional[timedelta] = None
        self._start = time.perf_counter()

    def observe(self, message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.status_code = message["status"]
        elif message["type"] == "http.response.body":
            self.content_length += len(message.get("body", b""))

    def finish(self) -> None:
        self.latency = timedelta(seconds=time.perf_counter() - self._start)


class RequestLoggingMiddleware:
    """ASGI middleware that logs every HTTP request as an operation.

    Args:
        app: The ASGI application to wrap.
        logger: Logger to derive request loggers from (default: ``from_context()``
            at request time).
        producer: Operation producer (default: the request path).
        exclude_paths: Paths to skip; exact matches or wildcard patterns.
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: Optional[Logger] = None,
        producer: Optional[str] = None,
        exclude_paths: Optional[list[str]] = None,
    ) -> None:
        self.app = app
        self.logger = logger
        self.producer = producer
        self.exclude_paths = exclude_paths or []

    def _path_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._path_excluded(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        logger = (self.logger or from_context()).bind(request(Request(scope)))
        operation_id = uuid.uuid4().hex
        producer = self.producer or scope.get("path", "")
        recorder = ResponseRecorder()

        async def wrapped_send(message: dict[str, Any]) -> None:
            recorder.observe(message)
            await send(message)

        logger.info("request received")
        logger.info("execution started", operation_start(operation_id, producer))

        with with_context(logger):
            try:
                await self.app(scope, receive, wrapped_send)
            except Exception as exc:
                recorder.finish()
                if not recorder.status_code:
                    recorder.status_code = 500
                logger.error("execution finished", operation_end(operation_id, producer), error(exc))
                logger.bind(response_writer_info(recorder)).error("request completed")
                raise

        recorder.finish()
        logger.info("execution finished", operation_end(operation_id, producer))
        logger.bind(response_writer_info(recorder)).info("request completed")
