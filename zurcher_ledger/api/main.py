"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from zurcher_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from zurcher_ledger.api.v1 import bank_accounts, credit_account, fixed_expenses
from zurcher_ledger.infrastructure.observability.logging import setup_logging
from zurcher_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Zurcher Ledger",
        description="Payment reconciliation for revolving accounts, fixed expenses and bank accounts",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

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
    app.include_router(fixed_expenses.router, tags=["fixed-expenses"])
    app.include_router(credit_account.router, tags=["credit-account"])
    app.include_router(bank_accounts.router, tags=["bank-accounts"])

    return app


app = create_app()
