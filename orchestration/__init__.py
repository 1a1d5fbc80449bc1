"""Agent Orchestration.

Coordinates agents grouped into teams: task routing, multi-phase team
execution, declarative workflows, tiered shared memory and a risk-based
approval gate.
"""

from orchestration.core import (
    AutonomyService,
    MemoryService,
    MessageBus,
    Orchestrator,
    TeamExecutor,
    WorkflowEngine,
)
from orchestration.persistence import Database, InMemoryDatabase

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Services
    "MemoryService",
    "MessageBus",
    "Orchestrator",
    "TeamExecutor",
    "WorkflowEngine",
    "AutonomyService",
    # Persistence
    "Database",
    "InMemoryDatabase",
]
