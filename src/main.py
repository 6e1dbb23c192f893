"""
Repair Case Service - Main Application
=======================================

Workflow and SLA orchestration for repair cases.

Modules:
- Cases: Case intake; attaches a workflow and an SLA record to every case
- Workflow: Configuration selection, instance lifecycle, state history
- SLA: Due dates, breach/warning monitoring, escalation, Slack delivery

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, Slack, scheduler, policy file watcher

This module is the composition root: it owns the database, the SLA policy
manager, the notifier and the scheduler, and hands them to the routes via
``app.state``.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.config import Settings, get_settings
from src.infrastructure.database import Database
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from src.shared.infrastructure.logging import setup_logging, get_logger
from src.sla.application import SLAMonitor, SLAScanJob
from src.sla.infrastructure import (
    SLAConfigManager,
    SlackNotifier,
    SLAScheduler,
    sla_repository_scope,
)

# Module Routers
from src.cases.interfaces import case_router
from src.sla.interfaces import sla_router
from src.workflow.interfaces import workflow_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Create database tables (development)
    3. Load SLA policy and watch it for changes
    4. Start SLA scheduler

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Stop policy watcher
    3. Close Slack client
    4. Close database connections
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database
    sla_config: SLAConfigManager = app.state.sla_config
    notifier: SlackNotifier = app.state.sla_notifier

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Repair Case Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    if settings.create_tables_on_startup:
        logger.info("Creating database tables")
        await database.create_tables()

    logger.info("Loading SLA policy", extra={"path": str(settings.sla_config_path)})
    sla_config.load()
    sla_config.start_watching()

    scheduler: Optional[SLAScheduler] = None
    if settings.sla_scan_interval_minutes > 0:
        job = SLAScanJob(
            SLAMonitor(sla_repository_scope(database), sla_config),
            notifier
        )
        scheduler = SLAScheduler(interval_minutes=settings.sla_scan_interval_minutes)
        await scheduler.start(job.run)
    else:
        logger.info("SLA scheduler disabled")
    app.state.sla_scheduler = scheduler

    logger.info("Repair Case Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Repair Case Service")

    if scheduler:
        await scheduler.stop()

    sla_config.stop_watching()
    await notifier.close()
    await database.close()

    logger.info("Repair Case Service shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to the environment)
        database: Pre-built database, e.g. an in-memory one under test
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Repair Case Workflow & SLA API",
        description="""
    ## Repair Case Workflow & SLA Service

    Attaches a workflow and an SLA to every repair case and keeps both moving.

    ---

    ### Cases
    - `POST /cases` - Create a case; starts its workflow and opens its SLA record

    ### Workflow
    - `GET /workflows/instances/{id}` - Instance state
    - `GET /workflows/instances/{id}/history` - Append-only state history
    - `POST /workflows/instances/{id}/steps/{step_id}/complete` - Complete current step
    - `POST /workflows/instances/{id}/cancel` - Cancel instance
    - `POST /workflows/configurations/resolve` - Dry-run configuration selection

    ### SLA
    - `GET /sla/cases/{case_id}` - SLA state of a case
    - `POST /sla/scan` - Run the SLA monitor now

    **SLA Time Limits:**

    | Priority | Hours |
    |----------|-------|
    | Urgent   | 4     |
    | High     | 24    |
    | Medium   | 72    |
    | Low      | 168   |
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # Composition root: everything routes need lives on app.state
    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.sla_config = SLAConfigManager(settings.sla_config_path)
    app.state.sla_notifier = SlackNotifier(settings)
    app.state.sla_scheduler = None

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    # Added last runs first: correlation id must be set before logging.
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    register_exception_handlers(app)

    # === Include Module Routers ===
    app.include_router(case_router)
    app.include_router(workflow_router)
    app.include_router(sla_router)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])

    return app


async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports SLA policy and scheduler state.
    """
    state = request.app.state
    scheduler = getattr(state, "sla_scheduler", None)

    return {
        "status": "healthy",
        "version": state.settings.app_version,
        "environment": state.settings.environment,
        "checks": {
            "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "slack": "configured" if state.sla_notifier.enabled else "not_configured",
        }
    }


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
