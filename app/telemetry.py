"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for the feed composer, keyed by mode and bucket

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from app.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
FEED_LATENCY = Histogram(
    "feed_latency_seconds",
    "End-to-end latency of GET /feed",
    ["mode"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

FEED_REQUESTS_TOTAL = Counter(
    "feed_requests_total",
    "Feed pages composed, by the mode that produced them",
    ["mode"],
)

FEED_BUCKET_POSTS_TOTAL = Counter(
    "feed_bucket_posts_total",
    "Posts contributed to composed pages per bucket",
    ["mode", "bucket"],
)

FEED_BUCKET_ERRORS_TOTAL = Counter(
    "feed_bucket_errors_total",
    "Bucket queries that failed and were served as empty",
    ["mode", "bucket"],
)

FEED_FALLBACKS_TOTAL = Counter(
    "feed_fallbacks_total",
    "Times a mode fell back to a broader query",
    ["mode", "reason"],  # 'relaxed_author' | 'no_follows'
)

POST_INGESTION_TOTAL = Counter(
    "post_ingestion_total",
    "Total number of posts ingested",
    ["kind"],  # 'post' | 'story'
)

NOTIFICATION_ERRORS_TOTAL = Counter(
    "notification_errors_total",
    "Notification events that could not be published",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    RedisInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
