"""
CivicTrack - Main Application
=============================

Civic issue tracking: citizens report problems, authorities resolve them
under SLA deadlines, citizens verify the fix.

Modules:
- Tickets: filing, lifecycle state machine, feedback loop, upvotes
- SLA: criticality classification, deadlines, live status, escalation sweep
- Notifications: per-user in-app feeds
- Users: directory of citizens and authorities

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, Slack, policy watcher, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

# Configuration and Core
from civictrack.config import settings
from civictrack.core import ApplicationException

# Infrastructure
from civictrack.infrastructure.database import (
    close_database, create_tables, get_session_context, get_session_maker, init_database
)

# SLA Module - External services
from civictrack.sla.infrastructure import SlackClient, SLAPolicyManager, SLAScheduler
from civictrack.sla.services import SLASweeper

# Users
from civictrack.users import load_user_fixtures, seed_users
from civictrack.users.infrastructure import SQLAlchemyUserDirectory

# Module Routers
from civictrack.notifications.interfaces import notifications_router
from civictrack.sla.interfaces import sla_router
from civictrack.tickets.interfaces import tickets_router

# Middleware
from civictrack.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

# Logging
from civictrack.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load the SLA policy and watch it for changes
    4. Seed the user directory from the fixture file
    5. Start the SLA sweep scheduler (unless disabled)

    SHUTDOWN:
    1. Stop SLA scheduler and policy watcher
    2. Close Slack client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting CivicTrack", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Use Alembic in production; a missing database leaves the API degraded
    try:
        await create_tables()
    except (OSError, SQLAlchemyError) as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    policy_manager = SLAPolicyManager()
    policy_manager.load(settings.sla_policy_path)
    policy_manager.start_watching()
    app.state.sla_policy = policy_manager

    users = load_user_fixtures(settings.users_fixture_path)
    if users:
        try:
            async with get_session_context() as session:
                await seed_users(SQLAlchemyUserDirectory(session), users)
        except (OSError, SQLAlchemyError, ApplicationException) as e:
            logger.warning("User directory not seeded", extra={"error": str(e)})

    slack_client = SlackClient()
    sweeper = SLASweeper(get_session_maker(), policy_manager, slack_client)
    app.state.sla_sweeper = sweeper

    scheduler = None
    if settings.sla_sweep_interval > 0:
        scheduler = SLAScheduler(interval_seconds=settings.sla_sweep_interval)
        await scheduler.start(sweeper.run)
    else:
        logger.info("SLA sweep disabled")
    app.state.sla_scheduler = scheduler

    logger.info("CivicTrack started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down CivicTrack")

    if scheduler:
        await scheduler.stop()
    policy_manager.stop_watching()
    await slack_client.close()
    await close_database()

    logger.info("CivicTrack shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="CivicTrack API",
    description="""
    ## Civic Issue Tracking with SLA Deadlines

    Citizens report issues; authorities work them through a strict
    lifecycle; the reporter verifies every resolution.

    ---

    ### Tickets

    - `POST /tickets` - File an issue (citizen)
    - `GET /tickets` - List with filters and sorting (authority)
    - `GET /tickets/mine`, `GET /tickets/nearby`, `GET /tickets/{id}`
    - `PUT /tickets/{id}/status` - Authority transition
    - `POST /tickets/{id}/feedback` - Owner approves or rejects a resolution
    - `POST /tickets/{id}/upvote` - One vote per user

    ### SLA

    - `GET /sla/tickets/{id}` - Live SLA status and urgency score
    - `GET /sla/stats` - Buckets across all tickets (authority)

    | Criticality | Deadline |
    |-------------|----------|
    | critical    | 6 hours  |
    | high        | 24 hours |
    | medium      | 3 days   |
    | low         | 7 days   |

    ### Notifications

    - `GET /notifications`, `PUT /notifications/{id}/read`,
      `PUT /notifications/read-all`

    Callers identify themselves with the `X-User-ID` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(sla_router)
app.include_router(notifications_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "sla_policy": "loaded",
                        "sla_scheduler": "running"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(request.app.state, "sla_scheduler", None)
    checks = {
        "sla_policy": "loaded" if getattr(request.app.state, "sla_policy", None) else "defaults",
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
    }
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "CivicTrack",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "tickets": {"prefix": "/tickets"},
            "sla": {"prefix": "/sla"},
            "notifications": {"prefix": "/notifications"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "civictrack.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
