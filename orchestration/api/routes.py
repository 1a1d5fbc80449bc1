"""API routes.

Thin HTTP transport over the orchestration core: workflow execution control,
the completion callbacks agents use to report finished work, the approval
queue and the template catalog. Domain exceptions propagate to the handlers in
``orchestration.utils.error_handlers``.
"""

from fastapi import APIRouter, Depends, Query

from orchestration.core import (
    AutonomyService,
    TeamExecutor,
    TemplateService,
    UnmappedAgentTypeError,
    WorkflowEngine,
)
from orchestration.models import (
    ApprovalDecision,
    Department,
    PendingActionFilters,
    PendingActionStatus,
    RiskLevel,
)
from orchestration.utils.exceptions import BadRequestError, NotFoundError
from orchestration.utils.logging import get_api_logger

from .dependencies import (
    Services,
    get_autonomy_service,
    get_services,
    get_team_executor,
    get_template_service,
    get_workflow_engine,
)
from .schemas import (
    AgentTaskCompletionRequest,
    APIResponse,
    BulkReviewRequest,
    CreateTeamFromTemplateRequest,
    CreateWorkflowFromTemplateRequest,
    ExecuteWorkflowRequest,
    ReviewRequest,
    StepCompletionRequest,
)

logger = get_api_logger()

api_router = APIRouter(prefix="/api/v1")
workflow_router = APIRouter(tags=["Workflows"])
task_router = APIRouter(tags=["Tasks"])
approval_router = APIRouter(prefix="/approvals", tags=["Approvals"])
template_router = APIRouter(prefix="/templates", tags=["Templates"])


@api_router.get("/health", tags=["Health"])
async def health_check(services: Services = Depends(get_services)) -> APIResponse:
    """Report the workspace served and the step queue state."""
    scheduler = services.workflow_engine.scheduler
    return APIResponse(
        success=True,
        data={
            "status": "healthy",
            "workspace_id": services.workspace_id,
            "scheduler_running": scheduler.is_running,
            "scheduled_steps": scheduler.pending,
        },
    )


# =============================================================================
# Workflow Endpoints
# =============================================================================


@workflow_router.post("/workflows/{workflow_id}/executions")
async def execute_workflow(
    workflow_id: str,
    request: ExecuteWorkflowRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    result = await engine.execute(
        workflow_id,
        trigger_type=request.trigger_type,
        trigger_data=request.trigger_data,
        initial_context=request.initial_context,
    )
    return APIResponse(
        success=result.success,
        data=result.model_dump(mode="json"),
        error=result.error,
    )


@workflow_router.get("/workflows/{workflow_id}/executions")
async def list_executions(
    workflow_id: str,
    limit: int | None = Query(default=None, ge=1, le=100),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    executions = await engine.list_executions(workflow_id, limit=limit)
    return APIResponse(
        success=True,
        data=[e.model_dump(mode="json") for e in executions],
        metadata={"count": len(executions)},
    )


@workflow_router.get("/executions/{execution_id}")
async def get_execution(
    execution_id: str,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    execution = await engine.get_execution_status(execution_id)
    if execution is None:
        raise NotFoundError("WorkflowExecution", execution_id)
    return APIResponse(success=True, data=execution.model_dump(mode="json"))


@workflow_router.post("/executions/{execution_id}/pause")
async def pause_execution(
    execution_id: str,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    execution = await engine.pause(execution_id)
    return APIResponse(success=True, data=execution.model_dump(mode="json"))


@workflow_router.post("/executions/{execution_id}/resume")
async def resume_execution(
    execution_id: str,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    execution = await engine.resume(execution_id)
    return APIResponse(success=True, data=execution.model_dump(mode="json"))


@workflow_router.post("/executions/{execution_id}/cancel")
async def cancel_execution(
    execution_id: str,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    execution = await engine.cancel(execution_id)
    return APIResponse(success=True, data=execution.model_dump(mode="json"))


@workflow_router.post("/executions/{execution_id}/steps/{step_id}/complete")
async def complete_step(
    execution_id: str,
    step_id: str,
    request: StepCompletionRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    """Completion callback for a dispatched step.

    Repeated callbacks are acknowledged with ``applied: false``.
    """
    applied = await engine.complete_step(
        execution_id,
        step_id,
        success=request.success,
        output=request.output,
        error=request.error,
    )
    logger.info(
        "Step completion received",
        execution_id=execution_id,
        step_id=step_id,
        success=request.success,
        applied=applied,
    )
    return APIResponse(success=True, data={"applied": applied})


@workflow_router.post("/executions/{execution_id}/steps/{step_id}/retry")
async def retry_step(
    execution_id: str,
    step_id: str,
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse:
    result = await engine.retry_step(execution_id, step_id)
    return APIResponse(
        success=result.error is None,
        data=result.model_dump(mode="json"),
        error=result.error,
    )


# =============================================================================
# Team Task Endpoints
# =============================================================================


@task_router.post("/tasks/{task_id}/complete")
async def complete_agent_task(
    task_id: str,
    request: AgentTaskCompletionRequest,
    team_executor: TeamExecutor = Depends(get_team_executor),
) -> APIResponse:
    """Completion callback for a task delegated to a team member."""
    applied = await team_executor.complete_agent_task(
        task_id,
        success=request.success,
        output=request.output,
        error=request.error,
    )
    return APIResponse(success=True, data={"applied": applied})


# =============================================================================
# Approval Endpoints
# =============================================================================


@approval_router.get("")
async def list_pending_actions(
    team_id: str | None = Query(default=None),
    agent_id: str | None = Query(default=None),
    action_status: PendingActionStatus = Query(
        default=PendingActionStatus.PENDING, alias="status"
    ),
    risk_level: RiskLevel | None = Query(default=None),
    action_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    autonomy: AutonomyService = Depends(get_autonomy_service),
) -> APIResponse:
    actions = await autonomy.get_pending_actions(
        PendingActionFilters(
            team_id=team_id,
            agent_id=agent_id,
            status=action_status,
            risk_level=risk_level,
            action_type=action_type,
            limit=limit,
            offset=offset,
        )
    )
    return APIResponse(
        success=True,
        data=[a.model_dump(mode="json") for a in actions],
        metadata={"count": len(actions), "limit": limit, "offset": offset},
    )


@approval_router.post("/bulk")
async def bulk_review(
    request: BulkReviewRequest,
    autonomy: AutonomyService = Depends(get_autonomy_service),
) -> APIResponse:
    result = await autonomy.process_bulk_approval(
        request.action_ids,
        approved=request.approved,
        reviewer_id=request.reviewer_id,
        review_notes=request.review_notes,
    )
    return APIResponse(success=True, data=result.model_dump())


@approval_router.get("/{action_id}")
async def get_pending_action(
    action_id: str,
    autonomy: AutonomyService = Depends(get_autonomy_service),
) -> APIResponse:
    action = await autonomy.get_pending_action(action_id)
    if action is None:
        raise NotFoundError("PendingAction", action_id)
    return APIResponse(success=True, data=action.model_dump(mode="json"))


@approval_router.post("/{action_id}/approve")
async def approve_action(
    action_id: str,
    request: ReviewRequest,
    autonomy: AutonomyService = Depends(get_autonomy_service),
) -> APIResponse:
    action = await autonomy.review(
        ApprovalDecision(
            action_id=action_id,
            approved=True,
            reviewer_id=request.reviewer_id,
            review_notes=request.review_notes,
        )
    )
    return APIResponse(success=True, data=action.model_dump(mode="json"))


@approval_router.post("/{action_id}/reject")
async def reject_action(
    action_id: str,
    request: ReviewRequest,
    autonomy: AutonomyService = Depends(get_autonomy_service),
) -> APIResponse:
    action = await autonomy.review(
        ApprovalDecision(
            action_id=action_id,
            approved=False,
            reviewer_id=request.reviewer_id,
            review_notes=request.review_notes,
        )
    )
    return APIResponse(success=True, data=action.model_dump(mode="json"))


# =============================================================================
# Template Endpoints
# =============================================================================


@template_router.get("/workflows")
async def list_workflow_templates(
    department: Department | None = Query(default=None),
    category: str | None = Query(default=None),
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    found = templates.catalog.workflow_templates
    if department is not None:
        found = [t for t in found if t.department == department]
    if category is not None:
        found = [t for t in found if t.category == category]
    return APIResponse(
        success=True,
        data=[t.model_dump(mode="json") for t in found],
        metadata={"count": len(found)},
    )


@template_router.get("/workflows/suggest")
async def suggest_workflow_template(
    keywords: list[str] = Query(...),
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    template = templates.catalog.suggest_workflow_template(keywords)
    return APIResponse(
        success=True, data=template.model_dump(mode="json") if template else None
    )


@template_router.get("/workflows/{template_id}")
async def get_workflow_template(
    template_id: str,
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    template = templates.catalog.get_workflow_template(template_id)
    if template is None:
        raise NotFoundError("WorkflowTemplate", template_id)
    return APIResponse(success=True, data=template.model_dump(mode="json"))


@template_router.post("/workflows/{template_id}/instantiate")
async def create_workflow_from_template(
    template_id: str,
    request: CreateWorkflowFromTemplateRequest,
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    """Create a draft workflow with each step bound to a concrete agent."""
    try:
        workflow = await templates.create_workflow_from_template(
            template_id,
            agent_mapping=request.agent_mapping,
            name=request.name,
            description=request.description,
            team_id=request.team_id,
        )
    except UnmappedAgentTypeError as e:
        raise BadRequestError(e.message, details=e.details) from e
    return APIResponse(success=True, data=workflow.model_dump(mode="json"))


@template_router.get("/teams")
async def list_team_templates(
    department: Department | None = Query(default=None),
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    found = (
        templates.catalog.team_templates_by_department(department)
        if department is not None
        else templates.catalog.team_templates
    )
    return APIResponse(
        success=True,
        data=[t.model_dump(mode="json") for t in found],
        metadata={"count": len(found)},
    )


@template_router.get("/teams/suggest")
async def suggest_team_template(
    keywords: list[str] = Query(...),
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    template = templates.catalog.suggest_team_template(keywords)
    return APIResponse(
        success=True, data=template.model_dump(mode="json") if template else None
    )


@template_router.get("/teams/{template_id}")
async def get_team_template(
    template_id: str,
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    template = templates.catalog.get_team_template(template_id)
    if template is None:
        raise NotFoundError("TeamTemplate", template_id)
    return APIResponse(success=True, data=template.model_dump(mode="json"))


@template_router.post("/teams/{template_id}/instantiate")
async def create_team_from_template(
    template_id: str,
    request: CreateTeamFromTemplateRequest,
    templates: TemplateService = Depends(get_template_service),
) -> APIResponse:
    team = await templates.create_team_from_template(
        template_id,
        name=request.name,
        description=request.description,
        member_agent_ids=request.member_agent_ids,
        provision_agents=request.provision_agents,
        created_by=request.created_by,
    )
    return APIResponse(success=True, data=team.model_dump(mode="json"))


api_router.include_router(workflow_router)
api_router.include_router(task_router)
api_router.include_router(approval_router)
api_router.include_router(template_router)

__all__ = [
    "api_router",
    "approval_router",
    "task_router",
    "template_router",
    "workflow_router",
]
