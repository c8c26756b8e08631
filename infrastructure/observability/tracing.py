"""
OpenTelemetry Distributed Tracing

Configures OpenTelemetry for the order engine. Spans are exported over
OTLP/HTTP to whatever collector OTEL_EXPORTER_OTLP_ENDPOINT points at.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.django import DjangoInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

_initialized = False


def setup_tracing(
    service_name: str = "keystash-backend",
    endpoint: Optional[str] = None,
    enable: bool = True,
) -> None:
    """
    Initialize OpenTelemetry tracing with an OTLP exporter.

    Args:
        service_name: Name of the service for tracing
        endpoint: OTLP/HTTP traces endpoint (exporter default when None)
        enable: Enable/disable tracing

    Example:
        setup_tracing(
            service_name="keystash-backend",
            endpoint="http://otel-collector:4318/v1/traces",
        )
    """
    global _initialized

    if _initialized:
        logger.warning("Tracing already initialized. Skipping.")
        return

    if not enable:
        logger.info("Tracing disabled via configuration")
        return

    resource = Resource(attributes={SERVICE_NAME: service_name})
    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    exporter = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
    tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info(f"OTLP tracing configured: {endpoint or 'default endpoint'}")

    # Auto-instrument Django (traces all HTTP requests)
    DjangoInstrumentor().instrument()
    logger.info("Django auto-instrumentation enabled")

    _initialized = True
    logger.info(f"OpenTelemetry tracing initialized for service: {service_name}")


def get_tracer(name: str = __name__) -> trace.Tracer:
    """
    Get tracer instance for creating custom spans.

    Without setup_tracing() this returns the no-op tracer, so spans
    can be opened unconditionally.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("payout.request"):
            ...
    """
    return trace.get_tracer(name)


def add_span_attributes(span: trace.Span, **attributes) -> None:
    """Add custom attributes to a span (values are stringified)."""
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, str(value))
