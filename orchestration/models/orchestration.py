"""Task routing and team execution models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .agent import AgentStatus, TeamRole
from .message import MessagePriority


class OrchestratorTask(BaseModel):
    """A unit of work to be routed to an agent."""

    task_type: str = Field(..., description="Requested agent type")
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    required_capabilities: list[str] = Field(default_factory=list)
    preferred_agent_id: str | None = None
    preferred_team_id: str | None = None
    priority: MessagePriority = MessagePriority.NORMAL

    model_config = {"extra": "forbid"}


class TaskAssignment(BaseModel):
    """Routing decision. A zero confidence assignment means nothing matched."""

    agent_id: str
    agent_name: str
    team_id: str | None = None
    team_name: str | None = None
    confidence: float = Field(..., ge=0, le=100)
    reason: str


class DelegationResult(BaseModel):
    success: bool
    from_agent_id: str
    to_agent_id: str
    message_id: str | None = None
    task_id: str | None = None
    error: str | None = None


class TeamExecutionResult(BaseModel):
    """Returned by every team run; failures are reported, not raised."""

    success: bool
    team_id: str
    objective: str
    execution_id: str | None = None
    results: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    duration_ms: int = 0
    agents_involved: list[str] = Field(default_factory=list)


class TeamTask(BaseModel):
    objective: str
    priority: MessagePriority = MessagePriority.NORMAL
    context: dict[str, Any] = Field(default_factory=dict)
    deadline: datetime | None = None
    required_capabilities: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class HandoffContext(BaseModel):
    from_agent_id: str
    to_agent_id: str
    task_description: str
    context: dict[str, Any] = Field(default_factory=dict)
    priority: MessagePriority = MessagePriority.NORMAL
    previous_results: list[dict[str, Any]] = Field(default_factory=list)
    team_id: str | None = None

    model_config = {"extra": "forbid"}


class AgentExecutionResult(BaseModel):
    """Result of dispatching a task to one agent.

    ``success`` reports the dispatch, not the agent's eventual work.
    """

    agent_id: str
    agent_name: str
    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: int = 0


class TeamMemberInfo(BaseModel):
    """A team member joined with its agent."""

    member_id: str
    agent_id: str
    agent_name: str
    agent_type: str
    role: TeamRole
    priority: int
    status: AgentStatus
    capabilities: list[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == AgentStatus.ACTIVE


class TeamPhase(str, Enum):
    """Phases of a team run, in order."""

    VALIDATE = "validate"
    INITIALIZE = "initialize"
    COORDINATE = "coordinate"
    BROADCAST = "broadcast"
    COORDINATOR = "coordinator"
    SPECIALISTS = "specialists"
    SUPPORT = "support"
    FINALIZE = "finalize"
    COMPLETED = "completed"
    FAILED = "failed"


class TeamExecutionState(BaseModel):
    """Mutable state threaded through the team run state machine."""

    execution_id: str
    team_id: str
    task: TeamTask
    phase: TeamPhase = TeamPhase.VALIDATE
    team_name: str | None = None
    members: list[TeamMemberInfo] = Field(default_factory=list)
    agent_results: list[AgentExecutionResult] = Field(default_factory=list)
    shared_context: dict[str, Any] = Field(default_factory=dict)
    phases_completed: list[TeamPhase] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime
