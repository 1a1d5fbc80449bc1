"""Agent, team and team membership models.

Agents and teams are created by an external admin surface; the core reads
them and only writes execution bookkeeping (counters, timestamps, autonomy).
"""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class AgentStatus(str, Enum):
    """Agent availability."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Department(str, Enum):
    """Department a team belongs to."""

    SALES = "sales"
    MARKETING = "marketing"
    SUPPORT = "support"
    OPERATIONS = "operations"
    FINANCE = "finance"
    PRODUCT = "product"
    GENERAL = "general"


class AutonomyLevel(str, Enum):
    """How much a team may do without human review."""

    SUPERVISED = "supervised"  # every action is reviewed
    SEMI_AUTONOMOUS = "semi_autonomous"  # anything above low risk is reviewed
    AUTONOMOUS = "autonomous"  # only critical actions are reviewed


class TeamStatus(str, Enum):
    """Team lifecycle state."""

    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class TeamRole(str, Enum):
    """Role of an agent inside a team."""

    COORDINATOR = "coordinator"
    SPECIALIST = "specialist"
    SUPPORT = "support"


class Agent(BaseModel):
    """A capability-bearing unit of work."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Agent identifier"
    )
    workspace_id: str = Field(..., description="Owning workspace")
    name: str = Field(..., description="Display name")
    type: str = Field(..., description="Free-form capability tag used for routing")
    description: str = Field(default="", description="Agent description")
    status: AgentStatus = Field(default=AgentStatus.ACTIVE, description="Status")
    capabilities: list[str] = Field(
        default_factory=list, description="Declared capabilities"
    )
    tools: list[str] = Field(default_factory=list, description="Declared tools")
    execution_count: int = Field(default=0, ge=0, description="Dispatched tasks")
    last_executed_at: datetime | None = Field(
        default=None, description="Last dispatch time"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid"}

    @property
    def is_active(self) -> bool:
        return self.status == AgentStatus.ACTIVE


class Team(BaseModel):
    """A department-scoped group of agents sharing one autonomy policy."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Team identifier"
    )
    workspace_id: str = Field(..., description="Owning workspace")
    name: str = Field(..., description="Team name")
    description: str = Field(default="", description="Team description")
    department: Department = Field(default=Department.GENERAL)
    autonomy_level: AutonomyLevel = Field(
        default=AutonomyLevel.SUPERVISED, description="Approval policy"
    )
    approval_required: list[str] = Field(
        default_factory=list,
        description="Action types that always require approval",
    )
    max_concurrent_tasks: int = Field(default=5, ge=1)
    status: TeamStatus = Field(default=TeamStatus.ACTIVE)
    total_executions: int = Field(default=0, ge=0)
    successful_executions: int = Field(default=0, ge=0)
    last_active_at: datetime | None = Field(default=None)
    created_by: str | None = Field(default=None, description="Creating user")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid"}

    @property
    def is_active(self) -> bool:
        return self.status == TeamStatus.ACTIVE


class TeamMember(BaseModel):
    """Association of one agent to one team."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    team_id: str = Field(..., description="Team identifier")
    agent_id: str = Field(..., description="Agent identifier")
    role: TeamRole = Field(default=TeamRole.SPECIALIST)
    priority: int = Field(default=0, description="Lower runs first within a role")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid"}
