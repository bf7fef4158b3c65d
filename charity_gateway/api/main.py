"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from charity_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from charity_gateway.api.v1 import batch, cases, contributions
from charity_gateway.infrastructure.observability.logging import setup_logging
from charity_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Charity Gateway",
        description="Contribution approval and bulk moderation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Last added = first executed
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(contributions.router, prefix="/v1", tags=["contributions"])
    app.include_router(batch.router, prefix="/v1", tags=["moderation"])
    app.include_router(cases.router, prefix="/v1", tags=["cases"])

    return app


app = create_app()
