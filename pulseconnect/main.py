"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from pulseconnect.core.config import settings
from pulseconnect.db.session import engine
from pulseconnect.routers.shared import domain_error_handler
from pulseconnect.services.errors import CoreServiceError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Patient and donor data never leaves
    )
    logging.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="PulseConnect API",
    description="Blood and plasma request matching and donation scheduling",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.add_exception_handler(CoreServiceError, domain_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Actor-Id", "X-Actor-Role"],
)

# ============================================================================
# Routers
# ============================================================================

from pulseconnect.routers import appointments, donors, inventory, notifications, requests

app.include_router(requests.router, prefix="/requests", tags=["requests"])
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
app.include_router(donors.router, prefix="/donors", tags=["donors"])

# Notifications (user-scoped)
app.include_router(notifications.router, prefix="/me", tags=["notifications"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
