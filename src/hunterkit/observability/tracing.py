from __future__ import annotations

"""
hunterkit.observability.tracing
===============================

OpenTelemetry spans for admission cycles.

- `setup_tracing()` installs an SDK tracer provider (optionally with an exporter).
- `span()` opens a span on the `hunterkit` tracer; without `setup_tracing()`
  the API's default provider makes spans no-ops.
- `trace()` decorates sync or async callables.

Usage:
    setup_tracing(service_name="hunter", exporter=ConsoleSpanExporter())
    with span("pipeline.fetch", cycle_id=ctx.cycle_id):
        ...
"""

import functools
import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar, cast

from opentelemetry import trace as otel_trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from ..core.log import get_logger

__all__ = ["setup_tracing", "span", "trace"]

_log = get_logger("observability.tracing")
_F = TypeVar("_F", bound=Callable[..., Any])
_TRACER_NAME = "hunterkit"


def setup_tracing(*, service_name: str, exporter: SpanExporter | None = None) -> TracerProvider:
    """
    Configure the global tracer provider.

    Args:
        service_name: value of the `service.name` resource attribute.
        exporter: where finished spans go; without one spans are recorded but
            not exported.
    """
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    otel_trace.set_tracer_provider(provider)
    _log.info("tracing configured", event="tracing.configured", service=service_name, exporter=exporter is not None)
    return provider


@contextmanager
def span(name: str, **attributes: Any) -> Iterator[Any]:
    tracer = otel_trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(name) as sp:
        for k, v in attributes.items():
            if v is not None:
                sp.set_attribute(k, v)
        yield sp


def trace(name: str) -> Callable[[_F], _F]:
    """Wrap a function (sync or async) in a span named `name`."""

    def _decorator(func: _F) -> _F:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _aw(*args: Any, **kwargs: Any):
                with span(name):
                    return await func(*args, **kwargs)

            return cast(_F, _aw)

        @functools.wraps(func)
        def _sw(*args: Any, **kwargs: Any):
            with span(name):
                return func(*args, **kwargs)

        return cast(_F, _sw)

    return _decorator
