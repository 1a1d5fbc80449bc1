"""Agent Orchestration - Main Application Entry Point.

This module builds the orchestration components from configuration and
creates the FastAPI application that exposes them.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orchestration.api import Services, api_router
from orchestration.core import (
    AutonomyNotifier,
    AutonomyService,
    InMemoryNotificationSink,
    MemoryService,
    MessageBus,
    NotificationSink,
    Orchestrator,
    StepScheduler,
    TeamExecutor,
    TemplateCatalog,
    TemplateService,
    WorkflowEngine,
)
from orchestration.persistence import Database, InMemoryDatabase
from orchestration.utils.config import AppConfig, Environment, LogFormat, get_config, init_config
from orchestration.utils.error_handlers import register_error_handlers
from orchestration.utils.logging import (
    clear_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)

logger = get_logger(__name__)


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def get_config_path() -> Path:
    """Get the path to the app.yaml configuration file."""
    return get_project_root() / "configs" / "app.yaml"


def build_services(
    config: AppConfig,
    db: Database | None = None,
    sink: NotificationSink | None = None,
) -> Services:
    """Wire every orchestration component for one workspace.

    Args:
        config: Application configuration.
        db: Database to use; a fresh in-memory one by default.
        sink: Notification sink; an in-memory sink by default.

    Returns:
        The assembled components.
    """
    workspace_id = config.app.workspace_id
    db = db or InMemoryDatabase()
    sink = sink or InMemoryNotificationSink()

    memory = MemoryService(db, workspace_id, config=config.memory)
    message_bus = MessageBus(db, workspace_id)
    workflow_engine = WorkflowEngine(
        db,
        workspace_id,
        message_bus,
        memory=memory,
        scheduler=StepScheduler(workers=config.workflow.scheduler_workers),
        config=config.workflow,
    )
    team_executor = TeamExecutor(
        db, workspace_id, message_bus, memory, executor=workflow_engine.executor
    )
    orchestrator = Orchestrator(
        db, workspace_id, message_bus, memory, workflow_engine=workflow_engine
    )
    notifier = AutonomyNotifier(
        sink,
        db,
        workspace_id,
        notify_user_ids=config.autonomy.notify_user_ids,
        high_pending_threshold=config.autonomy.high_pending_threshold,
    )
    autonomy = AutonomyService(db, workspace_id, config=config.autonomy, notifier=notifier)
    templates = TemplateService(
        db, workspace_id, TemplateCatalog.load(config.templates.directory)
    )

    return Services(
        config=config,
        db=db,
        memory=memory,
        message_bus=message_bus,
        workflow_engine=workflow_engine,
        team_executor=team_executor,
        orchestrator=orchestrator,
        autonomy=autonomy,
        notification_sink=sink,
        templates=templates,
    )


async def startup_event(services: Services) -> None:
    """Start background components."""
    config = services.config
    logger.info(
        "Starting Agent Orchestration",
        app_name=config.app.name,
        version=config.app.version,
        environment=config.app.env.value,
        workspace_id=config.app.workspace_id,
    )

    await services.workflow_engine.start()

    logger.info(
        "Agent Orchestration started successfully",
        host=config.app.host,
        port=config.app.port,
    )


async def shutdown_event(services: Services) -> None:
    """Stop background components."""
    logger.info("Shutting down Agent Orchestration")

    await services.workflow_engine.stop()

    logger.info("Agent Orchestration shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    Handles startup and shutdown events.
    """
    services: Services = app.state.services

    await startup_event(services)

    yield

    await shutdown_event(services)


def create_app(
    config_path: str | Path | None = None,
    env_file: str | Path | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config_path: Optional path to YAML configuration file.
        env_file: Optional path to .env file.
        services: Pre-built components; built from configuration if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    # Load configuration
    if services is not None:
        config = services.config
    else:
        if config_path is None:
            default_config_path = get_config_path()
            if default_config_path.exists():
                config_path = default_config_path
        config = init_config(yaml_path=config_path, env_file=env_file)

    # Setup logging
    setup_logging(
        level=config.logging.level,
        json_format=config.logging.format == LogFormat.JSON,
    )

    # Create FastAPI app
    app = FastAPI(
        title=config.app.name,
        description="Multi-agent orchestration core - routing, team coordination, workflows and approvals",
        version=config.app.version,
        docs_url="/docs" if config.app.debug else None,
        redoc_url="/redoc" if config.app.debug else None,
        openapi_url="/openapi.json" if config.app.debug else None,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.services = services or build_services(config)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.app.env == Environment.DEVELOPMENT else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Any:
        """Add request ID to each request for tracing."""
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id
        set_correlation_id(request_id)

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        clear_correlation_id()

        return response

    # Add logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next: Any) -> Any:
        """Log incoming requests and responses."""
        logger.info(
            "Request received",
            method=request.method,
            path=str(request.url.path),
            client=request.client.host if request.client else "unknown",
        )

        response = await call_next(request)

        logger.info(
            "Response sent",
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
        )

        return response

    # Register error handlers
    register_error_handlers(app)

    # Include API routers
    app.include_router(api_router)

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with basic information."""
        return {
            "name": config.app.name,
            "version": config.app.version,
            "workspace_id": config.app.workspace_id,
            "status": "running",
            "docs": "/docs" if config.app.debug else "disabled",
        }

    # Readiness check
    @app.get("/ready", tags=["Health"])
    async def readiness(request: Request) -> JSONResponse:
        """Kubernetes readiness check."""
        services: Services | None = getattr(request.app.state, "services", None)
        if services is None or not services.workflow_engine.scheduler.is_running:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "message": "Service not initialized"},
            )

        return JSONResponse(
            status_code=200,
            content={"status": "ready"},
        )

    # Liveness check
    @app.get("/live", tags=["Health"])
    async def liveness() -> JSONResponse:
        """Kubernetes liveness check."""
        return JSONResponse(
            status_code=200,
            content={"status": "alive"},
        )

    return app


# Create the application instance
app = create_app()


def run_dev_server() -> None:
    """Run the development server with hot-reload."""
    import uvicorn

    config = get_config()

    uvicorn.run(
        "orchestration.main:app",
        host=config.app.host,
        port=config.app.port,
        reload=True,
        reload_dirs=["orchestration"],
        log_level="info",
    )


def run_prod_server() -> None:
    """Run the production server.

    The in-memory database is per process, so the server runs one worker.
    """
    import uvicorn

    config = get_config()

    uvicorn.run(
        "orchestration.main:app",
        host=config.app.host,
        port=config.app.port,
        reload=False,
        workers=1,
        log_level="warning",
        access_log=False,
    )


if __name__ == "__main__":
    run_dev_server()
