"""
Geo Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Initialise DB connection pool (Postgres)
  3. Create tables if not present
  4. Start Kafka producer (notification events)
  5. Connect to Redis (explorer session seeds)
  6. Expose Prometheus /metrics endpoint

Kafka and Redis only carry best-effort side channels, so the API still
starts, degraded, when either is unreachable.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from app.config import settings
from app.database import dispose_db, init_db
from app.telemetry import setup_tracing, instrument_app
from app.clients.kafka_producer import init_kafka, stop_kafka
from app.clients.redis_client import close_redis, init_redis
from app.routers import users, posts, feed

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Geo Feed API (env=%s)", settings.environment)

    await init_db()
    try:
        await init_kafka()
    except Exception as exc:
        logger.warning("Kafka unavailable (%s) — notifications disabled", exc)
    try:
        await init_redis()
    except Exception as exc:
        logger.warning("Redis unavailable (%s) — explorer pages unseeded", exc)

    logger.info("API ready.")
    yield

    logger.info("Shutting down...")
    await stop_kafka()
    await close_redis()
    await dispose_db()


app = FastAPI(
    title="Geo Feed API",
    description=(
        "Geography-aware social feed: explorer, personalized, following "
        "and discovery modes blended from weighted post buckets."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(feed.router, prefix="/feed", tags=["Feed"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
