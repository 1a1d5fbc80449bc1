"""API module.

Provides the FastAPI routers, schemas, and dependencies.
"""

from .dependencies import (
    Services,
    get_autonomy_service,
    get_services,
    get_team_executor,
    get_template_service,
    get_workflow_engine,
)
from .routes import (
    api_router,
    approval_router,
    task_router,
    template_router,
    workflow_router,
)
from .schemas import (
    AgentTaskCompletionRequest,
    APIResponse,
    BulkReviewRequest,
    CreateTeamFromTemplateRequest,
    CreateWorkflowFromTemplateRequest,
    ErrorDetail,
    ErrorResponse,
    ExecuteWorkflowRequest,
    ReviewRequest,
    StepCompletionRequest,
)

__all__ = [
    # Routers
    "api_router",
    "workflow_router",
    "task_router",
    "approval_router",
    "template_router",
    # Dependencies
    "Services",
    "get_services",
    "get_workflow_engine",
    "get_team_executor",
    "get_autonomy_service",
    "get_template_service",
    # Schemas - Common
    "APIResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Schemas - Workflow
    "ExecuteWorkflowRequest",
    "StepCompletionRequest",
    # Schemas - Team
    "AgentTaskCompletionRequest",
    # Schemas - Approval
    "ReviewRequest",
    "BulkReviewRequest",
    # Schemas - Template
    "CreateTeamFromTemplateRequest",
    "CreateWorkflowFromTemplateRequest",
]
