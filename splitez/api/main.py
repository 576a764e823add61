"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from splitez.api.middleware import RequestIDMiddleware, MetricsMiddleware
from splitez.api.v1 import accounts, analytics, expenses, groups, settlements
from splitez.infrastructure.observability.logging import setup_logging
from splitez.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="SplitEZ Ledger",
        description="Group expense splitting, settlement ledger and balances",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(groups.router, prefix="/v1", tags=["groups"])
    app.include_router(expenses.router, prefix="/v1", tags=["expenses"])
    app.include_router(settlements.router, prefix="/v1", tags=["settlements"])
    app.include_router(analytics.router, prefix="/v1", tags=["analytics"])

    return app


app = create_app()
