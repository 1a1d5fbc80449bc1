"""Core components package.

This package contains the services of the orchestration core: memory,
messaging, routing, team execution, workflows and the approval gate.
"""

from .autonomy import DEFAULT_RISK_RULES, AutonomyService
from .conditions import evaluate_condition, evaluate_conditions, resolve_path
from .executor import AgentExecutor, MessageBusAgentExecutor
from .maintenance import cleanup_stale_executions, run_maintenance
from .memory import MemoryService
from .message_bus import MessageBus
from .notifications import (
    AutonomyNotifier,
    InMemoryNotificationSink,
    NotificationSink,
)
from .orchestrator import Orchestrator
from .scheduler import SchedulerError, StepScheduler
from .team_executor import TeamExecutor, TeamValidationError
from .templates import (
    TemplateCatalog,
    TemplateError,
    TemplateLoadError,
    TemplateService,
    UnmappedAgentTypeError,
    convert_template_to_steps,
    validate_agent_availability,
)
from .workflow_engine import WorkflowEngine

__all__ = [
    # Memory
    "MemoryService",
    # Message Bus
    "MessageBus",
    # Agent execution
    "AgentExecutor",
    "MessageBusAgentExecutor",
    # Orchestrator
    "Orchestrator",
    # Team Executor
    "TeamExecutor",
    "TeamValidationError",
    # Workflow Engine
    "WorkflowEngine",
    "StepScheduler",
    "SchedulerError",
    "evaluate_condition",
    "evaluate_conditions",
    "resolve_path",
    # Autonomy
    "AutonomyService",
    "DEFAULT_RISK_RULES",
    "AutonomyNotifier",
    "NotificationSink",
    "InMemoryNotificationSink",
    # Templates
    "TemplateCatalog",
    "TemplateService",
    "TemplateError",
    "TemplateLoadError",
    "UnmappedAgentTypeError",
    "convert_template_to_steps",
    "validate_agent_availability",
    # Maintenance
    "cleanup_stale_executions",
    "run_maintenance",
]
