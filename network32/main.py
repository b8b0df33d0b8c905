"""
Network32 Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Connect to Redis (feed preferences)
  4. Initialise MinIO client & bucket (clinical images)
  5. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from network32.config import settings
from network32.database import engine, init_db
from network32.exceptions import InvalidArgumentError, UpstreamFetchFailure
from network32.telemetry import setup_tracing, instrument_app
from network32.clients.redis_client import close_redis, init_redis
from network32.clients.minio_client import init_minio
from network32.routers import content, feed, users

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
    logger.info("Starting Network32 Feed API (env=%s)", settings.environment)

    await init_db()
    await init_redis()
    init_minio()                    # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Network32 Feed API",
    description=(
        "Professional network for dental practitioners: merged feed of "
        "clinical cases, forum threads, clinics and professionals."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(feed.router, prefix="/feed", tags=["Feed"])
app.include_router(content.router, prefix="/content", tags=["Content"])


# ── Error mapping ──────────────────────────────────────────────────────────
@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UpstreamFetchFailure)
async def upstream_failure_handler(request: Request, exc: UpstreamFetchFailure):
    logger.error("Upstream fetch failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={
            "detail": str(exc),
            "failed_types": [getattr(t, "value", t) for t in exc.failed_types],
        },
    )


# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
