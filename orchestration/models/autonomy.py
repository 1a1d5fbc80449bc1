"""Risk classification, approval queue and audit log models."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .agent import AutonomyLevel, Department


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return RISK_ORDER.index(self)


# Ascending severity
RISK_ORDER: list[RiskLevel] = [
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
]


class PendingActionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class RiskClassification(BaseModel):
    """Computed risk of one action, optionally with the team policy verdict."""

    risk_level: RiskLevel
    reasons: list[str] = Field(default_factory=list)
    requires_approval: bool = False

    model_config = {"extra": "forbid"}


class AutoExecuteDecision(BaseModel):
    can_execute: bool
    classification: RiskClassification

    model_config = {"extra": "forbid"}


class PendingAction(BaseModel):
    """A proposed action waiting for a human decision."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str
    team_id: str | None = None
    agent_id: str | None = None
    workflow_execution_id: str | None = None
    action_type: str = Field(..., description="Action type being proposed")
    action_data: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    risk_level: RiskLevel
    risk_reasons: list[str] = Field(default_factory=list)
    status: PendingActionStatus = Field(default=PendingActionStatus.PENDING)
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    expires_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid"}


class ActionAuditEntry(BaseModel):
    """Immutable record of an executed (or rejected) action."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str
    team_id: str | None = None
    agent_id: str | None = None
    action_type: str
    action_data: dict[str, Any] = Field(default_factory=dict)
    was_automatic: bool
    approval_id: str | None = Field(
        default=None, description="PendingAction that authorised the action"
    )
    risk_level: RiskLevel
    success: bool
    error: str | None = None
    result: dict[str, Any] | None = None
    duration_ms: int | None = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid", "frozen": True}


class QueueActionInput(BaseModel):
    action_type: str
    action_data: dict[str, Any] = Field(default_factory=dict)
    team_id: str | None = None
    agent_id: str | None = None
    workflow_execution_id: str | None = None
    description: str = ""
    expires_in_hours: float | None = Field(
        default=None, description="Lifetime of the request; defaults to 24h"
    )

    model_config = {"extra": "forbid"}


class ApprovalDecision(BaseModel):
    action_id: str
    approved: bool
    reviewer_id: str
    review_notes: str | None = None

    model_config = {"extra": "forbid"}


class AuditInput(BaseModel):
    """Input for AutonomyService.record_audit."""

    action_type: str
    was_automatic: bool
    risk_level: RiskLevel
    success: bool
    action_data: dict[str, Any] = Field(default_factory=dict)
    team_id: str | None = None
    agent_id: str | None = None
    approval_id: str | None = None
    error: str | None = None
    result: dict[str, Any] | None = None
    duration_ms: int | None = None

    model_config = {"extra": "forbid"}


class BulkApprovalResult(BaseModel):
    processed: int = 0
    failed: int = 0


class PendingActionFilters(BaseModel):
    team_id: str | None = None
    agent_id: str | None = None
    status: PendingActionStatus | None = PendingActionStatus.PENDING
    risk_level: RiskLevel | None = None
    action_type: str | None = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)

    model_config = {"extra": "forbid"}


class AuditLogFilters(BaseModel):
    team_id: str | None = None
    agent_id: str | None = None
    action_type: str | None = None
    was_automatic: bool | None = None
    success: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)

    model_config = {"extra": "forbid"}


class DepartmentMetrics(BaseModel):
    """Approval and execution figures aggregated over a department's teams."""

    department: Department | None = None
    team_count: int = 0
    active_teams: int = 0
    total_actions: int = 0
    auto_approved_actions: int = 0
    manually_approved_actions: int = 0
    rejected_actions: int = 0
    pending_approvals: int = 0
    success_rate: float = Field(default=0.0, description="Percentage, 0..100")
    avg_response_time_ms: float = 0.0


class TeamAutonomyStats(BaseModel):
    team_id: str
    team_name: str
    autonomy_level: AutonomyLevel
    total_actions: int = 0
    auto_executed: int = 0
    awaiting_approval: int = 0
    approved_today: int = 0
    rejected_today: int = 0
    last_action_at: datetime | None = None
