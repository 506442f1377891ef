"""OpenTelemetry spans around ingestion steps.

Descriptor requests, storage writes, the conversion trigger and each status
poll run inside a span named ``media_ingest.<step>``. Nothing is exported
until ``setup_tracing`` installs a provider; before that the API's no-op
tracer is used and spans cost nothing.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.trace import Span, Status, StatusCode

logger = logging.getLogger(__name__)

TRACER_NAME = "media_ingest"

_tracer: Optional[trace.Tracer] = None
_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str,
    service_version: str,
    exporter: Optional[SpanExporter] = None,
    enable_console_export: bool = False,
) -> trace.Tracer:
    """Install a tracer provider for ingestion spans.

    Args:
        service_name: Reported as ``service.name``
        service_version: Reported as ``service.version``
        exporter: Where finished spans go (e.g. an OTLP exporter supplied
            by the embedding application)
        enable_console_export: Also print finished spans to stdout

    Returns:
        The tracer used by ``create_span``
    """
    global _tracer, _provider

    _provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: service_version})
    )
    if exporter is not None:
        _provider.add_span_processor(BatchSpanProcessor(exporter))
    if enable_console_export:
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_provider)
    _tracer = _provider.get_tracer(TRACER_NAME, service_version)

    logger.info(f"Tracing initialized for {service_name} v{service_version}")
    return _tracer


def get_tracer() -> trace.Tracer:
    if _tracer is None:
        return trace.get_tracer(TRACER_NAME)
    return _tracer


def get_trace_id() -> Optional[str]:
    """Hex trace ID of the current span, or None outside a recording span."""
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        return format(context.trace_id, "032x")
    return None


def span_attributes(attributes: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Clean attributes for OpenTelemetry.

    None values are dropped and enums (file kinds, scopes, orientations) are
    reduced to their values.
    """
    cleaned = {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        cleaned[key] = value.value if isinstance(value, Enum) else value
    return cleaned


@contextmanager
def create_span(name: str, attributes: Optional[Mapping[str, Any]] = None) -> Iterator[Span]:
    """Run a block inside a span.

    An exception leaving the block is recorded on the span, which is marked
    as failed. Upload errors also record whether they can be retried.

    Args:
        name: Span name
        attributes: Step attributes, e.g. kind, post_id, bytes

    Yields:
        The created span
    """
    with get_tracer().start_as_current_span(
        name,
        attributes=span_attributes(attributes),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_attribute("error.type", type(e).__name__)
            retryable = getattr(e, "retryable", None)
            if retryable is not None:
                span.set_attribute("upload.retryable", retryable)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def shutdown_tracing() -> None:
    """Flush pending spans and uninstall the provider."""
    global _provider, _tracer
    if _provider:
        _provider.shutdown()
        _provider = None
        _tracer = None
        logger.info("Tracing shutdown complete")
