"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "reserva-booking-core"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Hold metrics
HOLDS_ISSUED = Counter(
    'hold_tokens_issued_total',
    'Hold tokens issued',
    registry=REGISTRY
)

HOLD_CONFLICTS = Counter(
    'hold_tokens_conflicts_total',
    'Hold issuances rejected because the slot was taken',
    ['source'],
    registry=REGISTRY
)

HOLDS_EXTENDED = Counter(
    'hold_tokens_extended_total',
    'Hold token extensions, by outcome',
    ['outcome'],
    registry=REGISTRY
)

HOLDS_RELEASED = Counter(
    'hold_tokens_released_total',
    'Hold tokens released by clients',
    registry=REGISTRY
)

HOLDS_PURGED = Counter(
    'hold_tokens_purged_total',
    'Dead hold rows deleted by the reaper',
    registry=REGISTRY
)

# Booking metrics
BOOKINGS_COMMITTED = Counter(
    'bookings_committed_total',
    'Bookings committed, by resulting status and origin',
    ['status', 'origin'],
    registry=REGISTRY
)

BOOKING_REJECTIONS = Counter(
    'booking_commit_rejections_total',
    'Booking commits rejected, by error code',
    ['code'],
    registry=REGISTRY
)

BOOKING_TRANSITIONS = Counter(
    'booking_transitions_total',
    'Booking lifecycle transitions after commit',
    ['to_status'],
    registry=REGISTRY
)

# Availability metrics
AVAILABILITY_QUERIES = Counter(
    'availability_queries_total',
    'Availability computations, by resource mode',
    ['mode'],
    registry=REGISTRY
)

AVAILABILITY_SLOTS = Histogram(
    'availability_slots_returned',
    'Number of bookable slots returned per day computed',
    buckets=(0, 1, 5, 10, 20, 40, 80, 160),
    registry=REGISTRY
)

WORKER_LAST_RUN = Gauge(
    'worker_last_run_timestamp_seconds',
    'Unix time of the last completed worker iteration',
    ['worker'],
    registry=REGISTRY
)


def setup_structured_logging():
    """
    Configure structlog and route stdlib logging through it.

    Modules log with ``logging.getLogger(__name__)`` and ``extra={...}``;
    the formatter below renders those records with the request context
    bound by the middleware.
    """

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors + [structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level))


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""

    # Create resource
    resource = Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })

    # Setup tracer provider
    trace.set_tracer_provider(TracerProvider(resource=resource))

    # Export spans only when a collector is configured
    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        span_processor = BatchSpanProcessor(otlp_exporter)
        trace.get_tracer_provider().add_span_processor(span_processor)

    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""

    resource = Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })

    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine=None):
    """Instrument SQLAlchemy with OpenTelemetry."""
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
    else:
        SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Collector for booking-core business metrics."""

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration_seconds: float):
        """Record one HTTP request."""
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration_seconds)

    @staticmethod
    def record_hold_issued():
        HOLDS_ISSUED.inc()

    @staticmethod
    def record_hold_conflict(source: str):
        """Record a hold rejected by an overlapping booking or hold."""
        HOLD_CONFLICTS.labels(source=source).inc()

    @staticmethod
    def record_hold_extension(outcome: str):
        HOLDS_EXTENDED.labels(outcome=outcome).inc()

    @staticmethod
    def record_hold_released():
        HOLDS_RELEASED.inc()

    @staticmethod
    def record_holds_purged(count: int):
        HOLDS_PURGED.inc(count)

    @staticmethod
    def record_booking_committed(status: str, from_hold: bool):
        """Record a committed booking."""
        BOOKINGS_COMMITTED.labels(status=status, origin="hold" if from_hold else "direct").inc()

    @staticmethod
    def record_booking_rejected(code: str):
        BOOKING_REJECTIONS.labels(code=code or "UNKNOWN").inc()

    @staticmethod
    def record_booking_transition(to_status: str):
        BOOKING_TRANSITIONS.labels(to_status=to_status).inc()

    @staticmethod
    def record_availability_query(mode: str, slot_count: int):
        """Record one computed day of availability."""
        AVAILABILITY_QUERIES.labels(mode=mode).inc()
        AVAILABILITY_SLOTS.observe(slot_count)

    @staticmethod
    def record_worker_run(worker: str, timestamp: float):
        WORKER_LAST_RUN.labels(worker=worker).set(timestamp)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
