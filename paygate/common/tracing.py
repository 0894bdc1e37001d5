"""OpenTelemetry wiring for the FastAPI services and outbound processor calls."""

from contextlib import contextmanager

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from paygate.common.config import settings
from paygate.common.logging import logger


tracer = trace.get_tracer("paygate")


def setup_tracing(service_name: str) -> None:
    """Register a tracer provider exporting over OTLP HTTP.

    An empty `OTEL_EXPORTER_OTLP_ENDPOINT` leaves the no-op provider in place.
    """

    if not settings.otel_exporter_otlp_endpoint:
        logger.info("tracing disabled service=%s", service_name)
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


@contextmanager
def gateway_span(operation: str, **attributes):
    """Child span for one processor call; only non-secret attributes are recorded."""

    with tracer.start_as_current_span(f"airwallex.{operation}") as span:
        span.set_attribute("paygate.gateway", settings.gateway_name)
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"paygate.{key}", value)
        yield span
