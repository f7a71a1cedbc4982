"""Tests for span tracing and meta injection."""

from __future__ import annotations

import pytest

from schemalens.services.result import ServiceResult
from schemalens.services.telemetry import (
    Span,
    annotate,
    disable_telemetry,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)


@pytest.fixture
def telemetry():
    enable_telemetry()
    yield
    disable_telemetry()


class _Service:
    @traced
    def run(self) -> ServiceResult:
        with trace_span("inner") as span:
            if span:
                span.annotate("rows", 3)
        return ServiceResult(ok=True, op="run")

    @traced
    async def run_async(self) -> ServiceResult:
        with trace_span("fetch"):
            pass
        return ServiceResult(ok=True, op="run_async", meta={"count": 1})

    @traced
    def plain(self) -> int:
        return 5

    @traced
    def outer(self) -> ServiceResult:
        inner = self.run()
        annotate("steps", 1)
        return inner.model_copy(update={"op": "outer"})


class TestDisabled:
    def test_no_meta(self) -> None:
        assert _Service().run().meta is None
        assert get_current_span() is None

    def test_trace_span_yields_none(self) -> None:
        with trace_span("x") as span:
            assert span is None


@pytest.mark.usefixtures("telemetry")
class TestEnabled:
    def test_meta_injected(self) -> None:
        meta = _Service().run().meta
        assert meta is not None
        tree = meta["telemetry"]
        assert tree["name"] == "_Service.run"
        assert tree["children"][0]["name"] == "inner"
        assert tree["children"][0]["annotations"] == {"rows": 3}

    @pytest.mark.asyncio
    async def test_async_meta_merged(self) -> None:
        meta = (await _Service().run_async()).meta
        assert meta is not None
        assert meta["count"] == 1
        assert meta["telemetry"]["children"][0]["name"] == "fetch"

    def test_non_result_passthrough(self) -> None:
        assert _Service().plain() == 5

    def test_span_outside_trace_is_none(self) -> None:
        with trace_span("orphan") as span:
            assert span is None

    def test_nested_traced_joins_parent_tree(self) -> None:
        meta = _Service().outer().meta
        assert meta is not None
        tree = meta["telemetry"]
        assert tree["name"] == "_Service.outer"
        assert tree["annotations"] == {"steps": 1}
        [child] = tree["children"]
        assert child["name"] == "_Service.run"
        assert child["children"][0]["name"] == "inner"

    def test_annotate_without_span_is_noop(self) -> None:
        annotate("ignored", True)
        assert get_current_span() is None


class TestSpan:
    def test_duration_and_dict(self) -> None:
        span = Span(name="root")
        assert span.duration_ms == 0.0
        span.end()
        assert span.duration_ms >= 0.0
        assert span.to_dict()["name"] == "root"
        assert "children" not in span.to_dict()

    def test_nested_span_is_not_root(self) -> None:
        root = Span(name="root")
        child = Span(name="child", parent=root)
        assert root.is_root is True
        assert child.is_root is False
