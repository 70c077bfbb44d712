"""
OpenTelemetry tracing configuration for distributed observability.

Provides:
- Auto-instrumentation for SQLAlchemy
- Manual span creation helpers
- Context propagation across Kafka messages
- OTLP export (Jaeger) for local development
"""

import os
from typing import Any

from opentelemetry import context as otel_context, trace
from opentelemetry.context import Context
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.propagate import extract
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON


class TracingConfig:
    """
    Usage:
        # Initialize once at app startup
        tracing = TracingConfig(service_name="settlement-service")
        tracing.setup()

        # Use cases open their own spans
        tracer = trace.get_tracer(__name__)
    """

    def __init__(
        self,
        *,
        service_name: str,
        otlp_endpoint: str | None = None,
        enable_console: bool = False,
    ) -> None:
        self.service_name = service_name
        self.otlp_endpoint = otlp_endpoint or os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
        self.enable_console = (
            enable_console or os.getenv('OTEL_CONSOLE_EXPORT', 'false').lower() == 'true'
        )

        self._provider: TracerProvider | None = None

    def setup(self) -> None:
        """
        Setup OpenTelemetry tracing with OTLP exporter.

        Should be called once at application startup.
        Exports traces to Jaeger via OTLP protocol (port 4317).
        """
        # Create resource with service name
        resource = Resource(attributes={SERVICE_NAME: self.service_name})

        # Sampling strategy: ALWAYS_ON at SDK level
        # - Head-based sampling can't capture errors (error status unknown at span start)
        # - For production volume control, use tail-based sampling in collector
        #   (e.g., Jaeger, Tempo) to: keep 100% errors, sample 10% of success traces
        sampler = ALWAYS_ON

        # Create tracer provider with sampler
        self._provider = TracerProvider(resource=resource, sampler=sampler)

        # Add OTLP exporter (works with Jaeger's OTLP receiver)
        if self.otlp_endpoint:
            otlp_exporter = OTLPSpanExporter(endpoint=self.otlp_endpoint)
            self._provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        # Add console exporter for debugging
        if self.enable_console:
            console_exporter = ConsoleSpanExporter()
            self._provider.add_span_processor(BatchSpanProcessor(console_exporter))

        # Set global tracer provider
        trace.set_tracer_provider(self._provider)

    def instrument_sqlalchemy(self, *, engine: Any) -> None:
        if hasattr(engine, 'sync_engine'):  # Handle AsyncEngine by instrumenting its sync_engine
            SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
        else:
            SQLAlchemyInstrumentor().instrument(engine=engine)

    def shutdown(self) -> None:
        if self._provider:
            self._provider.shutdown()


# Kafka payloads are JSON, so the W3C trace context rides inside the payload
TRACE_CONTEXT_FIELDS = ('traceparent', 'tracestate')


def inject_trace_context(*, headers: dict[str, str] | None = None) -> dict[str, str]:
    """
    Inject the current trace context into a carrier dict.

    Usage:
        payload = {**event.to_message(), **inject_trace_context()}
        await producer.produce(topic=topic, value=orjson.dumps(payload))
    """
    from opentelemetry.propagate import inject

    headers = headers or {}
    inject(headers)
    return headers


def extract_trace_context(*, headers: dict[str, str] | None = None) -> Context:
    """
    Attach the trace context found in a consumed payload so spans opened by the
    handler continue the producer's trace.

    Flow::

        confirm-payment handler           order-paid consumer
              │                                  │
              ├─ Span: kafka.publish             │
              │   payload: {traceparent: ...}    │
              │   ───────────────────────────>   │
              │                                  ├─ Span: consumer.order-paid (child)
              │                                  │    └─ Span: use_case.mint_tickets
              └──────────── Same Trace ──────────┘

    Returns:
        The extracted context, or the current one when the payload carries none
    """
    if headers and any(headers.get(field) for field in TRACE_CONTEXT_FIELDS):
        ctx = extract(headers)
        otel_context.attach(ctx)
        return ctx
    return otel_context.get_current()
