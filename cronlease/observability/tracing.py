"""
OpenTelemetry tracing setup.

Lease transitions open spans (preempt, execute_job, release_lease,
reclaim_stale) through get_tracer(). Exporters and auto-instrumentation are
only installed when otel_enabled is set; otherwise the spans go to the
default no-op provider.
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

from cronlease import __version__
from cronlease.config import Settings, get_settings

_tracer: Tracer | None = None


def _build_provider(settings: Settings, console: bool) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
    )
    if settings.otel_enabled:
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    if console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    return provider


def setup_tracing(enable_console_export: bool = False) -> Tracer:
    """
    Set up OpenTelemetry tracing for this process.

    Args:
        enable_console_export: Also print finished spans to stdout.

    Returns:
        Tracer: The tracer lease components open their spans on.
    """
    global _tracer

    settings = get_settings()
    if settings.otel_enabled or enable_console_export:
        trace.set_tracer_provider(_build_provider(settings, enable_console_export))

    _tracer = trace.get_tracer(settings.otel_service_name)
    return _tracer


def instrument_fastapi(app: Any) -> None:
    """Trace admin API requests when tracing is enabled."""
    if get_settings().otel_enabled:
        FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    """
    Trace job store statements when tracing is enabled.

    Args:
        engine: The SQLAlchemy async engine; its sync engine is instrumented.
    """
    if get_settings().otel_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def get_tracer() -> Tracer:
    """Get the tracer, setting tracing up on first use."""
    if _tracer is None:
        return setup_tracing()
    return _tracer
