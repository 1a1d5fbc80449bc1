"""API schema definitions.

Request and response bodies used by the FastAPI endpoints.
"""

from typing import Any

from pydantic import BaseModel, Field

from orchestration.models import TriggerType

# =============================================================================
# Common Schemas
# =============================================================================


class APIResponse(BaseModel):
    """Standard API response envelope."""

    success: bool = Field(..., description="Whether the request succeeded")
    data: Any = Field(default=None, description="Response payload")
    error: str | None = Field(default=None, description="Error message")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Additional metadata"
    )


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Error class name")
    message: str = Field(..., description="Human-readable message")
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Error envelope produced by the exception handlers."""

    success: bool = Field(default=False, description="Always False")
    error: ErrorDetail
    metadata: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Workflow Schemas
# =============================================================================


class ExecuteWorkflowRequest(BaseModel):
    """Start a workflow execution."""

    trigger_type: TriggerType = Field(default=TriggerType.MANUAL)
    trigger_data: dict[str, Any] | None = Field(
        default=None, description="Payload of the trigger"
    )
    initial_context: dict[str, Any] | None = Field(
        default=None, description="Seed values for the execution context"
    )


class StepCompletionRequest(BaseModel):
    """Completion callback for a dispatched workflow step."""

    success: bool = Field(..., description="Whether the agent finished the step")
    output: dict[str, Any] | None = Field(default=None, description="Step output")
    error: str | None = Field(default=None, description="Failure reason")


# =============================================================================
# Team Schemas
# =============================================================================


class AgentTaskCompletionRequest(BaseModel):
    """Completion callback for a task delegated to a team member."""

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None


# =============================================================================
# Approval Schemas
# =============================================================================


class ReviewRequest(BaseModel):
    """Approve or reject one pending action."""

    reviewer_id: str = Field(..., min_length=1, description="Reviewing user")
    review_notes: str | None = Field(default=None, description="Reviewer notes")


class BulkReviewRequest(BaseModel):
    """Approve or reject several pending actions at once."""

    action_ids: list[str] = Field(..., min_length=1)
    approved: bool
    reviewer_id: str = Field(..., min_length=1)
    review_notes: str | None = None


# =============================================================================
# Template Schemas
# =============================================================================


class CreateTeamFromTemplateRequest(BaseModel):
    """Create a team from a team template."""

    name: str | None = Field(default=None, description="Team name; template name if unset")
    description: str | None = None
    member_agent_ids: list[str] | None = Field(
        default=None, description="Existing agents; the first becomes coordinator"
    )
    provision_agents: bool = Field(
        default=False, description="Create the template's recommended agents"
    )
    created_by: str | None = None


class CreateWorkflowFromTemplateRequest(BaseModel):
    """Create a draft workflow from a workflow template."""

    name: str | None = None
    description: str | None = None
    team_id: str | None = Field(default=None, description="Owning team")
    agent_mapping: dict[str, str] | None = Field(
        default=None,
        description="Agent type -> agent id; read from the team's members if unset",
    )
