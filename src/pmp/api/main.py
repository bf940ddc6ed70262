"""Power Market Preview - FastAPI read API.

This module provides the main FastAPI application:
- Date-keyed read API over the (topic, date) cache
- Scheduled sync trigger for the durable topology
- Health check endpoint with dependency monitoring
- Prometheus metrics endpoint for observability

Topology:
- PMP_CACHE_BACKEND=memory: a StreamConsumer starts in the lifespan and feeds
  the in-process cache
- PMP_CACHE_BACKEND=redis: no consumer; entries come from /api/cron/sync runs

Usage:
    # Development server
    uvicorn pmp.api.main:app --reload --port 3001

    # Or via the CLI
    pmp serve
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from pmp import __version__
from pmp.api.deps import get_consumer, get_store, shutdown_dependencies, startup_dependencies
from pmp.api.endpoints import router
from pmp.api.middleware import (
    CacheControlMiddleware,
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
)
from pmp.api.models import DependencyHealth, HealthResponse, HealthStatus
from pmp.cache import CacheStore
from pmp.common.config import config
from pmp.common.logging import configure_logging, get_logger
from pmp.common.metrics import initialize_metrics
from pmp.ingestion.consumer import ConsumerStatus, StreamConsumer

logger = get_logger(__name__, component="api")

# =============================================================================
# Application Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan manager.

    - Startup: configure logging, metrics, cache store and (memory backend) consumer
    - Shutdown: stop the consumer and close the store
    """
    configure_logging(config.observability)
    logger.info("PMP API starting up", backend=config.cache.backend)

    initialize_metrics(version=__version__, environment=config.environment)

    await startup_dependencies()
    logger.info("PMP API startup complete")

    yield

    logger.info("PMP API shutting down")
    await shutdown_dependencies()
    logger.info("PMP API shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Power Market Preview API",
    description="""
## Overview

Date-keyed read API over cable-auction and day-ahead exchange prices replayed
from Kafka.

## Endpoints

- **GET /api/status** - Ingestion status and available dates
- **GET /api/cables/{date}** - Cable-auction prices for a date
- **GET /api/exchanges/{date}** - Day-ahead exchange prices for a date
- **GET /api/dates** - Available dates per topic
- **GET|POST /api/cron/sync** - Bounded sync (Bearer secret required)
- **GET /health** - Health check
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# =============================================================================
# Middleware Configuration
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

# Custom middleware (order matters - last added is outermost)
app.add_middleware(CacheControlMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(router)


# =============================================================================
# Health Endpoint
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="""
    Health check endpoint for monitoring and load balancers.

    Checks:
    - Cache store reachability
    - Consumer state (memory backend only)
    """,
    tags=["Health"],
)
async def health_check(
    store: CacheStore = Depends(get_store),
    consumer: StreamConsumer | None = Depends(get_consumer),
) -> HealthResponse:
    dependencies = []
    overall_status = HealthStatus.HEALTHY

    start = time.time()
    reachable = store.ping()
    latency = (time.time() - start) * 1000

    if reachable:
        store_status = HealthStatus.HEALTHY
        store_message = None
    else:
        store_status = HealthStatus.UNHEALTHY
        store_message = f"{store.backend} store unreachable"
        overall_status = HealthStatus.UNHEALTHY

    dependencies.append(
        DependencyHealth(
            name="cache",
            status=store_status,
            latency_ms=round(latency, 2),
            message=store_message,
        ),
    )

    if consumer is not None:
        state = consumer.state
        if state.status is ConsumerStatus.CONNECTED:
            consumer_status = HealthStatus.HEALTHY
        elif state.status is ConsumerStatus.ERROR:
            consumer_status = HealthStatus.UNHEALTHY
        else:
            consumer_status = HealthStatus.DEGRADED

        # A broken consumer still leaves cached dates readable
        if consumer_status is not HealthStatus.HEALTHY and overall_status is HealthStatus.HEALTHY:
            overall_status = HealthStatus.DEGRADED

        dependencies.append(
            DependencyHealth(name="consumer", status=consumer_status, message=state.label),
        )

    return HealthResponse(
        status=overall_status,
        version=__version__,
        timestamp=datetime.now(UTC),
        dependencies=dependencies,
    )


# =============================================================================
# Observability Endpoints
# =============================================================================


@app.get(
    "/metrics",
    summary="Prometheus Metrics",
    tags=["Observability"],
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics for scraping."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Error Handlers
# =============================================================================


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors.

    Logs the error and returns a generic error body.
    """
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )

    return JSONResponse(status_code=500, content={"error": "Internal server error"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pmp.api.main:app",
        host=config.api.host,
        port=config.api.port,
        reload=True,
        log_level="info",
    )
