"""
Helpdesk Service - Main Application
====================================

Multi-tenant helpdesk backend.

Modules:
- SLA: business-hours deadlines, at-risk and breach alerts, compliance reports
- Hour Bank: prepaid customer hours, time tracking and debits

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from helpdesk.config import settings
from helpdesk.core import ApplicationException

# Infrastructure
from helpdesk.infrastructure.database import init_database, close_database, create_tables

# Module Routers
from helpdesk.sla.interfaces import sla_router
from helpdesk.hour_bank.interfaces import hour_banks_router, time_entries_router

# Shared
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)
from helpdesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables

    SHUTDOWN:
    1. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Development convenience; production schemas are managed by migrations.
    # Without a database the server still starts, but its endpoints fail.
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Helpdesk Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Service")
    await close_database()
    logger.info("Helpdesk Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk API",
    description="""
    ## Multi-tenant Helpdesk

    Every request carries the caller's tenant in `X-Tenant-ID`; `X-User-ID`
    and `X-User-Role` identify the user. Requests without a tenant are
    rejected with 401.

    ---

    ### SLA Module

    - `GET/POST /sla/configs`, `GET/PATCH/DELETE /sla/configs/{id}` - SLA policies per priority (admins)
    - `POST /sla/tickets` - Ingest tickets for SLA tracking
    - `GET /sla/tickets/{id}` - Deadlines and state of a ticket
    - `GET /sla/alerts` - Evaluate open tickets and list unresolved alerts
    - `GET /sla/reports` - Compliance report for a period

    Deadlines count **business minutes** only: time inside the configured
    daily window, on configured business days, in the config's timezone.

    ---

    ### Hour Bank Module

    - `GET/POST /hour-banks`, `GET/PATCH /hour-banks/{id}` - Prepaid hour balances
    - `POST /time-entries` - Start a timer or record manual work
    - `PATCH /time-entries/{id}` - Stop or pause a timer, debiting the bank
    - `GET /time-entries?ticket_id=` - A ticket's time entries
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)
app.state.settings = settings

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(sla_router)
app.include_router(hour_banks_router)
app.include_router(time_entries_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development"
                }
            }
        }
    }
})
async def health_check():
    """Health check endpoint for load balancers and orchestrators."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Helpdesk Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {
                "prefix": "/sla",
                "endpoints": [
                    "GET /sla/configs - List SLA configurations",
                    "POST /sla/tickets - Ingest ticket batch",
                    "GET /sla/tickets/{id} - Get ticket SLA status",
                    "GET /sla/alerts - Unresolved SLA alerts",
                    "GET /sla/reports - Compliance report"
                ]
            },
            "hour_bank": {
                "prefix": "/hour-banks",
                "endpoints": [
                    "GET /hour-banks - List hour banks",
                    "POST /time-entries - Start timer or record work",
                    "PATCH /time-entries/{id} - Stop or pause timer"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
