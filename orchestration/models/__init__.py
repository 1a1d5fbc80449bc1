"""Data models package.

This module defines all data models used by the orchestration core.
"""

from .agent import (
    Agent,
    AgentStatus,
    AutonomyLevel,
    Department,
    Team,
    TeamMember,
    TeamRole,
    TeamStatus,
)
from .autonomy import (
    RISK_ORDER,
    ActionAuditEntry,
    ApprovalDecision,
    AuditInput,
    AuditLogFilters,
    AutoExecuteDecision,
    BulkApprovalResult,
    DepartmentMetrics,
    PendingAction,
    PendingActionFilters,
    PendingActionStatus,
    QueueActionInput,
    RiskClassification,
    RiskLevel,
    TeamAutonomyStats,
)
from .dispatch import (
    DispatchHandle,
    DispatchRequest,
    DispatchStatus,
)
from .memory import (
    MemoryCategory,
    MemoryQuery,
    MemoryTier,
    SharedMemory,
)
from .message import (
    MESSAGE_STATUS_ORDER,
    AgentMessage,
    MessageContent,
    MessageFilters,
    MessagePriority,
    MessageStatus,
    MessageType,
    SendMessageInput,
)
from .notification import (
    NotificationEvent,
    NotificationEventType,
    NotificationType,
)
from .orchestration import (
    AgentExecutionResult,
    DelegationResult,
    HandoffContext,
    OrchestratorTask,
    TaskAssignment,
    TeamExecutionResult,
    TeamExecutionState,
    TeamMemberInfo,
    TeamPhase,
    TeamTask,
)
from .template import (
    AgentAvailability,
    AgentTemplate,
    TeamTemplate,
    TeamTemplateConfig,
    TeamWorkflowStep,
    TeamWorkflowTemplate,
    WorkflowStepTemplate,
    WorkflowTemplate,
)
from .workflow import (
    TERMINAL_EXECUTION_STATUSES,
    ConditionOperator,
    ExecutionError,
    ExecutionStatus,
    RetryConfig,
    StepCondition,
    StepResult,
    StepStatus,
    TriggerType,
    Workflow,
    WorkflowExecution,
    WorkflowResult,
    WorkflowStatus,
    WorkflowStep,
    WorkflowTrigger,
)

__all__ = [
    # Agent and team models
    "Agent",
    "AgentStatus",
    "AutonomyLevel",
    "Department",
    "Team",
    "TeamMember",
    "TeamRole",
    "TeamStatus",
    # Message models
    "AgentMessage",
    "MessageContent",
    "MessageFilters",
    "MessagePriority",
    "MessageStatus",
    "MessageType",
    "SendMessageInput",
    "MESSAGE_STATUS_ORDER",
    # Memory models
    "MemoryCategory",
    "MemoryQuery",
    "MemoryTier",
    "SharedMemory",
    # Workflow models
    "ConditionOperator",
    "ExecutionError",
    "ExecutionStatus",
    "RetryConfig",
    "StepCondition",
    "StepResult",
    "StepStatus",
    "TriggerType",
    "Workflow",
    "WorkflowExecution",
    "WorkflowResult",
    "WorkflowStatus",
    "WorkflowStep",
    "WorkflowTrigger",
    "TERMINAL_EXECUTION_STATUSES",
    # Dispatch models
    "DispatchHandle",
    "DispatchRequest",
    "DispatchStatus",
    # Orchestration models
    "AgentExecutionResult",
    "DelegationResult",
    "HandoffContext",
    "OrchestratorTask",
    "TaskAssignment",
    "TeamExecutionResult",
    "TeamExecutionState",
    "TeamMemberInfo",
    "TeamPhase",
    "TeamTask",
    # Autonomy models
    "ActionAuditEntry",
    "ApprovalDecision",
    "AuditInput",
    "AuditLogFilters",
    "AutoExecuteDecision",
    "BulkApprovalResult",
    "DepartmentMetrics",
    "PendingAction",
    "PendingActionFilters",
    "PendingActionStatus",
    "QueueActionInput",
    "RiskClassification",
    "RiskLevel",
    "TeamAutonomyStats",
    "RISK_ORDER",
    # Notification models
    "NotificationEvent",
    "NotificationEventType",
    "NotificationType",
    # Template models
    "AgentAvailability",
    "AgentTemplate",
    "TeamTemplate",
    "TeamTemplateConfig",
    "TeamWorkflowStep",
    "TeamWorkflowTemplate",
    "WorkflowStepTemplate",
    "WorkflowTemplate",
]
