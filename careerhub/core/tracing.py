"""OpenTelemetry spans around HTTP requests and generation stages.

Tracing is off unless OTEL_ENABLED is set; start_span then yields None and
costs nothing. The "memory" exporter keeps finished spans for tests.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Status, StatusCode

from careerhub.core.config import settings

SERVICE_NAME = "careerhub"

_tracer = None
_exporter = None


def setup_tracing(enabled: Optional[bool] = None, exporter_name: Optional[str] = None) -> None:
    global _tracer, _exporter

    if not (settings.OTEL_ENABLED if enabled is None else enabled):
        _tracer = None
        _exporter = None
        return

    choice = exporter_name or os.getenv("OTEL_EXPORTER", settings.OTEL_EXPORTER)
    _exporter = InMemorySpanExporter() if choice == "memory" else ConsoleSpanExporter()

    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    provider.add_span_processor(SimpleSpanProcessor(_exporter))
    # The global provider can only be set once per process
    _tracer = provider.get_tracer(SERVICE_NAME)


def annotate(span, attributes: Dict[str, object]) -> None:
    """Set non-null attributes on ``span``; no-op when tracing is off."""
    if span is None:
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


@contextmanager
def start_span(name: str, attributes: Optional[Dict[str, object]] = None):
    if _tracer is None:
        yield None
        return

    span = _tracer.start_span(name)
    annotate(span, attributes or {})
    with trace.use_span(span, end_on_exit=True, record_exception=False, set_status_on_exception=False):
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            code = getattr(e, "code", None)
            if code:
                span.set_attribute("error.code", code)
            raise


def get_exported_spans():
    if isinstance(_exporter, InMemorySpanExporter):
        return _exporter.get_finished_spans()
    return []


def reset_exported_spans():
    if isinstance(_exporter, InMemorySpanExporter):
        _exporter.clear()
