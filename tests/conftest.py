import io
import json
import typing as t
from datetime import datetime, timezone

import pytest

from stacklog import Handler, HandlerOptions, Record
from stacklog import levels
from stacklog.logger import set_default


class Sink(io.StringIO):
    """Text sink that exposes each written JSON document."""

    def entries(self) -> list[dict[str, t.Any]]:
        return [json.loads(line) for line in self.getvalue().splitlines() if line]


@pytest.fixture
def sink() -> Sink:
    return Sink()


@pytest.fixture
def make_handler(sink: Sink) -> t.Callable[..., Handler]:
    def factory(**options: t.Any) -> Handler:
        return Handler(sink, HandlerOptions(**options))

    return factory


@pytest.fixture
def make_record() -> t.Callable[..., Record]:
    def factory(message: str = "hi", *attrs: t.Any, level: int = levels.INFO, **kwargs: t.Any) -> Record:
        return Record(
            message=message,
            level=level,
            time=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            attrs=tuple(attrs),
            **kwargs,
        )

    return factory


@pytest.fixture(autouse=True)
def reset_default_logger():
    """Every test starts without a cached default logger."""
    set_default(None)
    yield
    set_default(None)
