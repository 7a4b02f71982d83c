"""OpenTelemetry tracer provider setup."""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)

logger = logging.getLogger(__name__)


def init_tracing(
    service_name: str = "awstrace",
    span_exporter: Optional[SpanExporter] = None,
    set_global: bool = False,
) -> TracerProvider:
    """Build an SDK tracer provider.

    Args:
        service_name: Value of the service.name resource attribute
        span_exporter: Exporter to use; exported synchronously when given
            (testing), otherwise spans are batched to the console
        set_global: Also install the provider as the global tracer provider

    Returns:
        The configured TracerProvider
    """
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if span_exporter is not None:
        provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    else:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    if set_global:
        trace.set_tracer_provider(provider)

    logger.info(
        f"Tracing initialized: service_name={service_name}",
        extra={"event": "otel.init", "set_global": set_global},
    )
    return provider
