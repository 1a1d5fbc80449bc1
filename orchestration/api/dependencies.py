"""Component container and FastAPI dependencies.

The application factory builds one ``Services`` per app and stores it on
``app.state``; route handlers pull the pieces they need from there.
"""

from dataclasses import dataclass

from fastapi import Depends, Request

from orchestration.core import (
    AutonomyService,
    MemoryService,
    MessageBus,
    Orchestrator,
    TeamExecutor,
    TemplateService,
    WorkflowEngine,
)
from orchestration.core.notifications import NotificationSink
from orchestration.persistence import Database
from orchestration.utils.config import AppConfig
from orchestration.utils.exceptions import APIError


@dataclass
class Services:
    """Every orchestration component, built once per application."""

    config: AppConfig
    db: Database
    memory: MemoryService
    message_bus: MessageBus
    workflow_engine: WorkflowEngine
    team_executor: TeamExecutor
    orchestrator: Orchestrator
    autonomy: AutonomyService
    notification_sink: NotificationSink
    templates: TemplateService

    @property
    def workspace_id(self) -> str:
        return self.config.app.workspace_id


def get_services(request: Request) -> Services:
    """Return the components attached to the running application.

    Raises:
        APIError: 503 if the application was created without services.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise APIError("Service not initialized", status_code=503)
    return services


def get_workflow_engine(services: Services = Depends(get_services)) -> WorkflowEngine:
    return services.workflow_engine


def get_team_executor(services: Services = Depends(get_services)) -> TeamExecutor:
    return services.team_executor


def get_autonomy_service(services: Services = Depends(get_services)) -> AutonomyService:
    return services.autonomy


def get_template_service(services: Services = Depends(get_services)) -> TemplateService:
    return services.templates
