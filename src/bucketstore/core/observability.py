"""Observability setup for bucketstore.

Logging goes through structlog on top of the stdlib ``logging`` module, and
tracing through OpenTelemetry. Client operations wrap themselves in
:func:`operation_context`, which opens a span and binds the operation name,
bucket and key into the structlog context for every event logged inside it.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import settings

TRACER_NAME = "bucketstore"


def setup_tracing() -> None:
    """Set up OpenTelemetry tracing."""
    if not settings.otel_enabled:
        return

    resource = Resource.create({"service.name": settings.otel_service_name})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)


def setup_logging() -> None:
    """Set up structured logging with structlog."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper()),
    )

    if settings.log_format == "console":
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a logger instance."""
    return structlog.get_logger(name)


def get_tracer(name: str = TRACER_NAME) -> trace.Tracer:
    """Get a tracer instance."""
    return trace.get_tracer(name)


@contextmanager
def operation_context(operation: str, bucket: str, key: str = "") -> Iterator[Any]:
    """Trace one client operation and tag its log events.

    Yields the active span so callers can attach result attributes.
    """
    attributes = {"bucketstore.bucket": bucket, "bucketstore.operation": operation}
    if key:
        attributes["bucketstore.key"] = key

    with get_tracer().start_as_current_span(
        f"bucketstore.{operation}", attributes=attributes
    ) as span:
        with structlog.contextvars.bound_contextvars(
            operation=operation, bucket=bucket, key=key
        ):
            yield span


# Initialize on import
setup_logging()
setup_tracing()
