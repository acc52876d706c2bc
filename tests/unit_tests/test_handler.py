"""
Handler lifecycle tests: level checks, derivation, grouping, writing and
concurrent use.
"""

from __future__ import annotations

import io
import json
from concurrent.futures import ThreadPoolExecutor

import pytest
from opentelemetry import trace
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags
from pydantic import ValidationError

import stacklog
from stacklog import Handler, HandlerOptions, LevelVar, levels
from stacklog.exceptions import EncodingError
from stacklog.record import Caller
from stacklog.values import Attr, Kind, Value, int_, lazy, string


class TestEnabled:
    """Level threshold checks"""

    def test_below_minimum_is_disabled(self, make_handler) -> None:
        handler = make_handler(level=levels.WARNING)
        assert not handler.enabled(levels.DEBUG)
        assert not handler.enabled(levels.INFO)
        assert handler.enabled(levels.WARNING)
        assert handler.enabled(levels.ERROR)

    def test_default_is_info(self, make_handler) -> None:
        handler = make_handler()
        assert not handler.enabled(levels.DEBUG)
        assert handler.enabled(levels.INFO)

    def test_level_by_name(self, make_handler) -> None:
        assert make_handler(level="error").level() == levels.ERROR

    def test_invalid_level_name(self) -> None:
        with pytest.raises(ValidationError):
            HandlerOptions(level="loud")

    def test_level_var_is_dynamic(self, make_handler) -> None:
        """Changing a LevelVar affects the handler and its children at once"""
        level = LevelVar("info")
        handler = make_handler(level=level)
        child = handler.with_attrs([string("k", "v")])
        assert not child.enabled(levels.DEBUG)
        level.set("debug")
        assert handler.enabled(levels.DEBUG)
        assert child.enabled(levels.DEBUG)


class TestHandle:
    """Writing entries"""

    def test_text_payload(self, make_handler, make_record, sink) -> None:
        make_handler().handle(make_record("hi"))
        assert sink.entries() == [{"severity": "INFO", "timestamp": "2024-05-01T12:30:00Z", "message": "hi"}]

    def test_json_payload(self, make_handler, make_record, sink) -> None:
        make_handler().handle(make_record("hi", string("k", "v")))
        assert sink.entries()[0]["message"] == {"message": "hi", "k": "v"}

    def test_reserved_attributes(self, make_handler, make_record, sink) -> None:
        make_handler(project_id="proj1").handle(
            make_record(
                "hi",
                stacklog.name("my/log"),
                stacklog.label(env="prod"),
                stacklog.operation_start("op-1", "svc"),
            )
        )
        entry = sink.entries()[0]
        assert entry["message"] == "hi"
        assert entry["logging.googleapis.com/labels"] == {"env": "prod"}
        assert entry["logging.googleapis.com/operation"] == {"id": "op-1", "producer": "svc", "first": True}
        assert "httpRequest" not in entry

    def test_log_name_not_written(self, make_handler, make_record) -> None:
        """The log name is resolved on the entry but has no wire field of its own"""
        entry = make_handler(project_id="proj1").entry(make_record("hi", stacklog.name("my/log")))
        assert entry.log_name == "projects/proj1/logs/my%2Flog"

    def test_source_location(self, make_handler, make_record, sink) -> None:
        record = make_record("hi", caller=Caller("app.py", 3, "app.run"))
        make_handler(add_source=True).handle(record)
        assert sink.entries()[0]["logging.googleapis.com/sourceLocation"] == {
            "file": "app.py",
            "line": "3",
            "function": "app.run",
        }

    def test_trace_from_current_span(self, make_handler, make_record, sink) -> None:
        span_context = SpanContext(
            trace_id=0x1234,
            span_id=0x5678,
            is_remote=False,
            trace_flags=TraceFlags(TraceFlags.SAMPLED),
        )
        with trace.use_span(NonRecordingSpan(span_context)):
            make_handler(project_id="p").handle(make_record("hi"))
            make_handler().handle(make_record("no project"))

        with_project, without_project = sink.entries()
        assert with_project["logging.googleapis.com/trace"] == "projects/p/traces/" + "0" * 28 + "1234"
        assert with_project["logging.googleapis.com/spanId"] == "0" * 12 + "5678"
        assert with_project["logging.googleapis.com/trace_sampled"] is True
        assert "logging.googleapis.com/trace" not in without_project

    def test_pretty_print(self, make_handler, make_record, sink) -> None:
        make_handler(add_indent=True).handle(make_record("hi"))
        assert sink.getvalue().startswith("{\n  ")
        assert json.loads(sink.getvalue())["message"] == "hi"

    def test_lazy_evaluated_once(self, make_handler, make_record, sink) -> None:
        calls = []

        def compute() -> int:
            calls.append(1)
            return 7

        make_handler(project_id="p").handle(make_record("hi", lazy("n", compute), stacklog.label(lazy("l", compute))))
        assert len(calls) == 2  # one per attribute
        entry = sink.entries()[0]
        assert entry["message"]["n"] == 7
        assert entry["logging.googleapis.com/labels"] == {"l": "7"}

    def test_encoding_error_writes_nothing(self, make_handler, make_record, sink) -> None:
        with pytest.raises(EncodingError):
            make_handler().handle(make_record("hi", Attr("bad", Value(Kind.ANY, object()))))
        assert sink.getvalue() == ""

    def test_write_error_propagates(self, make_record) -> None:
        class Broken(io.StringIO):
            def write(self, s: str) -> int:
                raise OSError("disk full")

        with pytest.raises(OSError, match="disk full"):
            Handler(Broken()).handle(make_record("hi"))

    def test_binary_sink(self, make_record) -> None:
        buffer = io.BytesIO()
        Handler(buffer).handle(make_record("hi"))
        assert json.loads(buffer.getvalue())["message"] == "hi"

    def test_direct_handle_below_threshold_still_writes(self, make_handler, make_record, sink) -> None:
        """Gating is the front-end's job; handle itself does not filter"""
        make_handler(level=levels.ERROR).handle(make_record("hi", level=levels.DEBUG))
        assert sink.entries()[0]["severity"] == "DEBUG"


class TestWithAttrs:
    """Derived handlers"""

    def test_baggage_applied(self, make_handler, make_record, sink) -> None:
        handler = make_handler().with_attrs([string("service", "api")])
        handler.handle(make_record("hi", string("k", "v")))
        assert sink.entries()[0]["message"] == {"message": "hi", "k": "v", "service": "api"}

    def test_parent_not_mutated(self, make_handler) -> None:
        parent = make_handler().with_attrs([string("a", "1")])
        left = parent.with_attrs([string("b", "2")])
        right = parent.with_attrs([string("c", "3")])
        assert parent.attrs == (string("a", "1"),)
        assert left.attrs == (string("a", "1"), string("b", "2"))
        assert right.attrs == (string("a", "1"), string("c", "3"))

    def test_call_attributes_win_over_baggage(self, make_handler, make_record) -> None:
        handler = make_handler(project_id="p").with_attrs([stacklog.name("bound"), string("k", "bound")])
        entry = handler.entry(make_record("hi", stacklog.name("call"), string("k", "call")))
        assert entry.log_name == "projects/p/logs/call"
        assert entry.payload == {"message": "hi", "k": "call"}

    def test_baggage_request_merges_with_call_response(self, make_handler, make_record) -> None:
        request = Attr("request", Value(Kind.ANY, stacklog.HttpRequest(request_method="GET")))
        response = Attr("response", Value(Kind.ANY, stacklog.HttpRequest(status=204)))
        entry = make_handler().with_attrs([request]).entry(make_record("done", response))
        assert entry.http_request.request_method == "GET"
        assert entry.http_request.status == 204

    def test_empty_returns_same_handler(self, make_handler) -> None:
        handler = make_handler()
        assert handler.with_attrs([]) is handler


class TestWithGroup:
    """Group scoping"""

    def test_record_attributes_nested(self, make_handler, make_record) -> None:
        entry = make_handler().with_group("req").entry(make_record("hi", string("k", "v")))
        assert entry.payload == {"message": "hi", "req": {"k": "v"}}

    def test_attributes_before_and_after_group(self, make_handler, make_record) -> None:
        handler = make_handler().with_attrs([string("a", "1")]).with_group("g").with_attrs([string("b", "2")])
        entry = handler.with_group("h").entry(make_record("hi", int_("c", 3)))
        assert entry.payload == {"message": "hi", "g": {"h": {"c": 3}, "b": "2"}, "a": "1"}

    def test_group_without_attributes_adds_nothing(self, make_handler, make_record) -> None:
        entry = make_handler().with_group("g").entry(make_record("hi"))
        assert entry.payload == "hi"

    def test_reserved_keys_stay_top_level(self, make_handler, make_record) -> None:
        """Reserved attributes keep their meaning on a grouped handler"""
        request = Attr("request", Value(Kind.ANY, stacklog.HttpRequest(request_method="GET")))
        handler = make_handler(project_id="p").with_group("g").with_attrs([stacklog.label(env="prod"), string("b", "2")])
        entry = handler.entry(
            make_record("hi", stacklog.name("n"), request, stacklog.operation_start("op", "svc"), string("k", "v"))
        )
        assert entry.log_name == "projects/p/logs/n"
        assert entry.http_request.request_method == "GET"
        assert entry.operation.id == "op"
        assert entry.labels == {"env": "prod"}
        assert entry.payload == {"message": "hi", "g": {"k": "v", "b": "2"}}

    def test_grouped_error_stays_top_level(self, make_handler, make_record) -> None:
        entry = make_handler().with_group("g").entry(make_record("failed", stacklog.error(ValueError("bad"))))
        assert entry.payload == {"message": "failed", "error": "bad"}

    def test_reserved_keys_inside_explicit_group_are_plain(self, make_handler, make_record) -> None:
        entry = make_handler(project_id="p").entry(make_record("hi", stacklog.group("g", stacklog.name("n"))))
        assert entry.log_name == ""
        assert entry.payload == {"message": "hi", "g": {"name": "n"}}

    def test_empty_name_returns_same_handler(self, make_handler) -> None:
        handler = make_handler()
        assert handler.with_group("") is handler


class TestConcurrency:
    def test_concurrent_handle(self, make_handler, make_record, sink) -> None:
        """Concurrent calls produce whole, individually valid JSON lines"""
        handler = make_handler().with_attrs([string("service", "api")])

        def work(i: int) -> None:
            handler.with_attrs([int_("worker", i % 7)]).handle(make_record("hi", int_("i", i), string("pad", "x" * 200)))

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(work, range(1000)))

        entries = sink.entries()
        assert len(entries) == 1000
        assert sorted(entry["message"]["i"] for entry in entries) == list(range(1000))
        assert all(entry["message"]["service"] == "api" for entry in entries)
