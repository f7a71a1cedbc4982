"""Timing spans for service calls — Span, @traced, trace_span.

Off by default; ``--verbose`` turns it on. While off, every entry point
costs one ContextVar lookup. While on, the outermost ``@traced`` call
owns a span tree and attaches it to its ServiceResult as
``meta["telemetry"]``. A ``@traced`` call made inside another one
(``show`` dispatching several selection commands, for instance) joins
the caller's tree as a child instead of starting a tree of its own.

Spans live in ContextVars, so concurrent tasks on one event loop, such
as a superseded neighborhood load still in flight, keep separate trees.
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Awaitable, Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar, cast

import structlog

from schemalens.services.result import ServiceResult

_enabled: ContextVar[bool] = ContextVar("_telemetry_enabled", default=False)
_current_span: ContextVar[Span | None] = ContextVar("_current_span", default=None)


@dataclass
class Span:
    """One timed step; children are the steps it ran."""

    name: str
    parent: Span | None = None
    children: list[Span] = field(default_factory=list)
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None
    annotations: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) * 1000

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def end(self) -> None:
        self.end_time = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


def _child_of(parent: Span | None, name: str) -> Span:
    span = Span(name=name, parent=parent)
    if parent is not None:
        parent.children.append(span)
    return span


@contextmanager
def trace_span(name: str) -> Generator[Span | None]:
    """Time a block as a child of the active span.

    Yields None when telemetry is off or no ``@traced`` call is active.
    """
    parent = _current_span.get() if _enabled.get() else None
    if parent is None:
        yield None
        return

    child = _child_of(parent, name)
    token = _current_span.set(child)
    try:
        yield child
    finally:
        child.end()
        _current_span.reset(token)


def annotate(key: str, value: Any) -> None:
    """Annotate the active span, if there is one."""
    span = get_current_span()
    if span is not None:
        span.annotate(key, value)


def _log_span(span: Span, *, ok: bool) -> None:
    structlog.get_logger("schemalens.telemetry").debug(
        "span.complete",
        span_name=span.name,
        duration_ms=round(span.duration_ms, 2),
        ok=ok,
        nested=not span.is_root,
    )


def _close(span: Span, result: Any) -> Any:
    """End *span*; a root span's tree is merged into a ServiceResult's meta."""
    span.end()
    _log_span(span, ok=not isinstance(result, ServiceResult) or result.ok)
    if span.is_root and isinstance(result, ServiceResult):
        meta = {**(result.meta or {}), "telemetry": span.to_dict()}
        return result.model_copy(update={"meta": meta})
    return result


def _fail(span: Span) -> None:
    span.end()
    _log_span(span, ok=False)


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Time a service method, sync or ``async def``."""
    name = func.__qualname__

    if inspect.iscoroutinefunction(func):
        async_func = cast(Callable[..., Awaitable[Any]], func)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            if not _enabled.get():
                return await async_func(*args, **kwargs)
            span = _child_of(_current_span.get(), name)
            token = _current_span.set(span)
            try:
                result = await async_func(*args, **kwargs)
            except Exception:
                _fail(span)
                raise
            finally:
                _current_span.reset(token)
            return _close(span, result)

        return cast(Callable[_P, _R], async_wrapper)

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get():
            return func(*args, **kwargs)
        span = _child_of(_current_span.get(), name)
        token = _current_span.set(span)
        try:
            result = func(*args, **kwargs)
        except Exception:
            _fail(span)
            raise
        finally:
            _current_span.reset(token)
        return cast(_R, _close(span, result))

    return wrapper


def enable_telemetry() -> None:
    """Turn span collection on for the current context."""
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)


def get_current_span() -> Span | None:
    """The active span, or None when telemetry is off."""
    if not _enabled.get():
        return None
    return _current_span.get()
