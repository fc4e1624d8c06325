"""Search service main application."""

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api.routes import router as api_router
from .hybrid.search_manager import create_search_manager
from .indexing.indexer import create_search_indexer
from libs.common.config import SearchConfig
from libs.common.logging import configure_logging
from libs.common.metrics import MetricsCollector
from libs.common.tracing import SearchTracer, configure_tracing

logger = structlog.get_logger("search_service")

SERVICE_NAME = "search-service"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    config = SearchConfig()
    configure_logging(SERVICE_NAME, config.ml_log_level, config.ml_log_format, env=config.ml_env)

    tracer = None
    if config.ml_tracing_enabled:
        tracer = configure_tracing(config.ml_otel_service_name, config.ml_otel_exporter)
        if tracer:
            logger.info(
                "OpenTelemetry tracing enabled",
                exporter=config.ml_otel_exporter,
                otel_service_name=config.ml_otel_service_name,
            )
        else:
            logger.warning("Tracing initialization failed")
    else:
        logger.info("OpenTelemetry tracing disabled via configuration")

    logger.info("Starting search service")

    app.state.metrics_collector = MetricsCollector(SERVICE_NAME)
    app.state.search_manager = create_search_manager(
        config,
        metrics=app.state.metrics_collector,
        tracer=SearchTracer(config.ml_otel_service_name, tracer),
    )
    app.state.indexer = create_search_indexer(
        app.state.search_manager,
        batch_size=config.ml_search_index_batch_size,
    )

    logger.info(
        "Search service started successfully",
        cache_backend=config.ml_search_cache_backend,
        cache_enabled=config.ml_search_cache_enabled,
    )

    yield

    # Shutdown
    logger.info("Shutting down search service")
    await app.state.search_manager.cleanup()
    logger.info("Search service shutdown complete")


app = FastAPI(
    title="Marketplace Search Service",
    description="Hybrid keyword and semantic search over marketplace components",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to responses."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect metrics for HTTP requests."""
    start_time = time.time()

    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as e:
        logger.error("Unhandled request error", path=request.url.path, error=str(e))
        status_code = 500
        response = JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    if hasattr(app.state, 'metrics_collector'):
        app.state.metrics_collector.record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status=status_code,
            duration=time.time() - start_time
        )

    return response


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        if hasattr(app.state, 'search_manager'):
            search_health = await app.state.search_manager.health_check()
        else:
            search_health = False

        if search_health:
            return {"status": "healthy", "service": SERVICE_NAME}
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME}
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME, "error": str(e)}
        )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    if hasattr(app.state, 'metrics_collector'):
        return Response(content=app.state.metrics_collector.get_metrics(), media_type="text/plain")
    return Response(content="# No metrics available\n", media_type="text/plain")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": "0.1.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "search": "/api/v1/search/unified",
            "suggestions": "/api/v1/search/suggestions",
            "docs": "/api/v1/search/docs",
            "popular": "/api/v1/search/popular",
            "similar": "/api/v1/components/{resource_id}/similar",
            "index": "/api/v1/index",
            "index_stats": "/api/v1/index/stats",
        }
    }


if __name__ == "__main__":
    config = SearchConfig()
    uvicorn.run(
        "service_search.app.main:app",
        host="0.0.0.0",
        port=config.ml_search_port,
        reload=True,
        log_level="info"
    )
