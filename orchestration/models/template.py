"""Team and workflow template models.

Templates are read-only catalog entries loaded from YAML. A workflow template
names the agent *type* each step needs; binding those types to concrete agent
ids turns it into the ``WorkflowStep`` list of a real workflow.
"""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from .agent import AutonomyLevel, Department, TeamRole
from .workflow import RetryConfig, StepCondition, WorkflowStep, WorkflowTrigger

TEMPLATE_MODEL_CONFIG: dict[str, Any] = {"extra": "forbid"}


class WorkflowStepTemplate(BaseModel):
    """One step of a workflow template, bound to an agent type."""

    id: str = Field(..., description="Step identifier, unique in the template")
    name: str
    description: str = ""
    action: str
    agent_type: str = Field(..., description="Agent type that handles the step")
    agent_role: TeamRole = Field(default=TeamRole.SPECIALIST)
    inputs: dict[str, Any] = Field(default_factory=dict)
    conditions: list[StepCondition] | None = None
    on_success: str | None = None
    on_failure: str | None = None
    timeout: int | None = Field(default=None, description="Advisory timeout (seconds)")
    retry_config: RetryConfig | None = None

    model_config = TEMPLATE_MODEL_CONFIG

    def to_step(self, agent_id: str) -> WorkflowStep:
        """Build the workflow step this template describes, run by ``agent_id``."""
        source = self.model_copy(deep=True)
        return WorkflowStep(
            id=source.id,
            name=source.name,
            agent_id=agent_id,
            action=source.action,
            inputs=source.inputs,
            conditions=source.conditions,
            on_success=source.on_success,
            on_failure=source.on_failure,
            timeout=source.timeout,
            retry_config=source.retry_config,
        )


def _check_routing(steps: list[Any]) -> None:
    ids = [step.id for step in steps]
    if len(ids) != len(set(ids)):
        raise ValueError("Step ids must be unique")
    known = set(ids)
    for step in steps:
        for target in (step.on_success, step.on_failure):
            if target is not None and target not in known:
                raise ValueError(f"Step {step.id} routes to unknown step: {target}")


class WorkflowTemplate(BaseModel):
    """A pre-built multi-agent workflow for one department."""

    id: str
    name: str
    description: str = ""
    category: str
    department: Department
    icon: str = ""
    trigger: WorkflowTrigger = Field(default_factory=WorkflowTrigger)
    steps: list[WorkflowStepTemplate] = Field(..., min_length=1)
    benefits: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)
    estimated_duration: str = ""
    required_agent_types: list[str] = Field(default_factory=list)

    model_config = TEMPLATE_MODEL_CONFIG

    @model_validator(mode="after")
    def validate_steps(self) -> "WorkflowTemplate":
        _check_routing(self.steps)
        step_types = {step.agent_type for step in self.steps}
        missing = step_types - set(self.required_agent_types)
        if missing:
            raise ValueError(
                f"Step agent types missing from required_agent_types: {sorted(missing)}"
            )
        return self

    @property
    def agent_types(self) -> list[str]:
        """Agent types used by the steps, in first-use order."""
        seen: list[str] = []
        for step in self.steps:
            if step.agent_type not in seen:
                seen.append(step.agent_type)
        return seen


class AgentTemplate(BaseModel):
    """A recommended team member."""

    name: str
    type: str
    role: TeamRole = Field(default=TeamRole.SPECIALIST)
    priority: int = Field(default=0, ge=0)
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    specializations: list[str] = Field(default_factory=list)

    model_config = TEMPLATE_MODEL_CONFIG


class TeamWorkflowStep(BaseModel):
    id: str
    name: str
    action: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    on_success: str | None = None
    on_failure: str | None = None
    timeout: int | None = Field(default=None, description="Advisory timeout (seconds)")

    model_config = TEMPLATE_MODEL_CONFIG


class TeamWorkflowTemplate(BaseModel):
    """A default workflow outline shipped with a team template."""

    name: str
    description: str = ""
    category: str
    trigger: WorkflowTrigger = Field(default_factory=WorkflowTrigger)
    steps: list[TeamWorkflowStep] = Field(default_factory=list)

    model_config = TEMPLATE_MODEL_CONFIG

    @model_validator(mode="after")
    def validate_steps(self) -> "TeamWorkflowTemplate":
        _check_routing(self.steps)
        return self


class TeamTemplateConfig(BaseModel):
    """Team settings applied when a team is created from the template."""

    autonomy_level: AutonomyLevel = Field(default=AutonomyLevel.SUPERVISED)
    approval_required: list[str] = Field(default_factory=list)
    max_concurrent_tasks: int = Field(default=5, ge=1)
    capabilities: list[str] = Field(default_factory=list)

    model_config = TEMPLATE_MODEL_CONFIG


class TeamTemplate(BaseModel):
    """A pre-built department team: settings, agent roles and workflows."""

    id: str
    name: str
    department: Department
    description: str = ""
    icon: str = ""
    config: TeamTemplateConfig = Field(default_factory=TeamTemplateConfig)
    agents: list[AgentTemplate] = Field(default_factory=list)
    workflows: list[TeamWorkflowTemplate] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)

    model_config = TEMPLATE_MODEL_CONFIG

    @property
    def coordinator(self) -> AgentTemplate | None:
        for agent in self.agents:
            if agent.role == TeamRole.COORDINATOR:
                return agent
        return None


class AgentAvailability(BaseModel):
    """Whether a workspace has every agent type a template needs."""

    valid: bool
    missing_types: list[str] = Field(default_factory=list)
