"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from remit_gateway.api.dependencies import build_orchestrator
from remit_gateway.api.middleware import MetricsMiddleware, RequestIDMiddleware
from remit_gateway.api.v1 import catalog, reports, transfers
from remit_gateway.config import settings
from remit_gateway.infrastructure.observability.logging import setup_logging
from remit_gateway.services.orchestrator import TransferOrchestrator

# JSON logs on stdout before any module logs
setup_logging(settings.log_level, service=settings.service_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.orchestrator is None:
        app.state.orchestrator = build_orchestrator(settings)

    rates = app.state.orchestrator.rates
    if settings.rate_refresh_enabled:
        rates.start(settings.rate_refresh_interval_seconds)
    try:
        yield
    finally:
        await rates.stop()


def create_app(orchestrator: Optional[TransferOrchestrator] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Without an orchestrator one is built from settings at startup.
    """
    app = FastAPI(
        title="Remit Gateway",
        description="Cross-border remittance transfer service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(transfers.router, prefix="/v1", tags=["transfers"])
    app.include_router(catalog.router, prefix="/v1", tags=["catalog"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
