"""Workflow definition and execution models.

Definitions (steps, conditions, retry policy, trigger) accept and emit the
camelCase keys used by stored workflow definitions (``agentId``,
``onSuccess``, ``retryConfig``...) as well as the snake_case field names.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

DEFINITION_MODEL_CONFIG: dict[str, Any] = {
    "extra": "forbid",
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class TriggerType(str, Enum):
    MANUAL = "manual"
    EVENT = "event"
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"
    AGENT_REQUEST = "agent_request"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EXISTS = "exists"


class ExecutionStatus(str, Enum):
    """Workflow execution state.

    running and paused are the only non-terminal states.
    """

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_EXECUTION_STATUSES


TERMINAL_EXECUTION_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_success(self) -> bool:
        """Completed and skipped both route along the success path."""
        return self in (StepStatus.COMPLETED, StepStatus.SKIPPED)


class StepCondition(BaseModel):
    """A single predicate evaluated against the execution context."""

    field: str = Field(..., description="Dotted path into the context")
    operator: ConditionOperator
    value: Any = None

    model_config = DEFINITION_MODEL_CONFIG


class RetryConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff_ms: int = Field(default=1000, ge=0)

    model_config = DEFINITION_MODEL_CONFIG


class WorkflowStep(BaseModel):
    """One node of the step graph."""

    id: str = Field(..., description="Step identifier, unique in the workflow")
    name: str = Field(..., description="Step name")
    agent_id: str = Field(..., description="Agent the step is dispatched to")
    action: str = Field(..., description="Action name")
    inputs: dict[str, Any] = Field(default_factory=dict)
    conditions: list[StepCondition] | None = None
    on_success: str | None = Field(default=None, description="Step to run next")
    on_failure: str | None = Field(default=None, description="Step to run on failure")
    timeout: int | None = Field(default=None, description="Advisory timeout (seconds)")
    retry_config: RetryConfig | None = None

    model_config = DEFINITION_MODEL_CONFIG


class WorkflowTrigger(BaseModel):
    type: TriggerType = Field(default=TriggerType.MANUAL)
    config: dict[str, Any] = Field(default_factory=dict)

    model_config = DEFINITION_MODEL_CONFIG


class Workflow(BaseModel):
    """A named, versioned directed step graph."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str = Field(..., description="Owning workspace")
    team_id: str | None = None
    name: str = Field(..., description="Workflow name")
    description: str = ""
    version: int = Field(default=1, ge=1)
    steps: list[WorkflowStep] = Field(default_factory=list)
    trigger: WorkflowTrigger = Field(default_factory=WorkflowTrigger)
    status: WorkflowStatus = Field(default=WorkflowStatus.DRAFT)
    total_executions: int = Field(default=0, ge=0)
    successful_executions: int = Field(default=0, ge=0)
    last_executed_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = DEFINITION_MODEL_CONFIG

    def get_step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def next_step_after(self, step_id: str) -> WorkflowStep | None:
        """Return the step declared right after ``step_id``, if any."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                if index + 1 < len(self.steps):
                    return self.steps[index + 1]
                return None
        return None

    def to_definition(self) -> dict[str, Any]:
        """Serialize to the stored definition format (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StepResult(BaseModel):
    """Outcome of one step within one execution."""

    step_id: str
    status: StepStatus
    output: dict[str, Any] | None = None
    error: str | None = None
    task_id: str | None = Field(default=None, description="Dispatch handle id")
    retry_count: int = Field(default=0, ge=0)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None

    model_config = {"extra": "forbid"}


class ExecutionError(BaseModel):
    message: str
    step: str | None = None
    details: dict[str, Any] | None = None

    model_config = {"extra": "forbid"}


class WorkflowExecution(BaseModel):
    """One run of a workflow."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str
    workflow_id: str
    status: ExecutionStatus = Field(default=ExecutionStatus.RUNNING)
    current_step_id: str | None = None
    step_results: dict[str, StepResult] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    total_steps: int = Field(default=0, ge=0)
    completed_steps: int = Field(default=0, ge=0)
    error: ExecutionError | None = None
    triggered_by: TriggerType = Field(default=TriggerType.MANUAL)
    trigger_data: dict[str, Any] | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    duration_ms: int | None = None

    model_config = {"extra": "forbid"}


class WorkflowResult(BaseModel):
    """Returned by WorkflowEngine.execute; failures are reported, not raised."""

    success: bool
    execution_id: str | None = None
    status: ExecutionStatus | None = None
    completed_steps: int = 0
    total_steps: int = 0
    error: str | None = None

    model_config = {"extra": "forbid"}
