"""
POS API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shared.infrastructure.db import SessionLocal
from shared.config.settings import settings
from pos_api.core import (
    lifespan,
    register_exception_handlers,
    register_middlewares,
)
from pos_api.models import SessionTotalsTrigger
from pos_api.routers import orders_router, sessions_router, tickets_router


# Create FastAPI application
app = FastAPI(
    title="POS Order & Tab API",
    description="Order lifecycle, tabs and voids for the restaurant point of sale",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)
register_middlewares(app)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "pos-api",
        "environment": settings.environment,
    }


@app.get("/api/health/detailed")
def health_check_detailed():
    """Health check including the database and the session totals trigger."""
    checks = {
        "service": "pos-api",
        "environment": settings.environment,
        "dependencies": {},
        "session_totals_trigger": SessionTotalsTrigger.is_registered(),
    }
    all_healthy = True

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        checks["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        checks["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    checks["status"] = "healthy" if all_healthy else "degraded"
    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(orders_router)
app.include_router(sessions_router)
app.include_router(tickets_router)
