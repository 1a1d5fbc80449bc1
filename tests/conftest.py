"""Shared test configuration and fixtures."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio

from orchestration.core import (
    AutonomyNotifier,
    AutonomyService,
    InMemoryNotificationSink,
    MemoryService,
    MessageBus,
    MessageBusAgentExecutor,
    Orchestrator,
    StepScheduler,
    TeamExecutor,
    TemplateCatalog,
    TemplateService,
    WorkflowEngine,
)
from orchestration.models import (
    Agent,
    Team,
    TeamMember,
    TeamRole,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
)
from orchestration.persistence import InMemoryDatabase
from orchestration.utils.config import AutonomyConfig, WorkflowConfig

WORKSPACE_ID = "ws_test"


@pytest.fixture
def workspace_id() -> str:
    return WORKSPACE_ID


@pytest.fixture
def db() -> InMemoryDatabase:
    """Fresh in-memory database fixture."""
    return InMemoryDatabase()


@pytest.fixture
def memory(db: InMemoryDatabase) -> MemoryService:
    return MemoryService(db, WORKSPACE_ID)


@pytest.fixture
def message_bus(db: InMemoryDatabase) -> MessageBus:
    return MessageBus(db, WORKSPACE_ID)


@pytest.fixture
def executor(db: InMemoryDatabase, message_bus: MessageBus) -> MessageBusAgentExecutor:
    return MessageBusAgentExecutor(db, message_bus)


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    """Workflow settings with no retry backoff so tests do not sleep."""
    return WorkflowConfig(scheduler_workers=2, default_backoff_ms=0)


@pytest_asyncio.fixture
async def engine(
    db: InMemoryDatabase,
    message_bus: MessageBus,
    memory: MemoryService,
    executor: MessageBusAgentExecutor,
    workflow_config: WorkflowConfig,
) -> AsyncGenerator[WorkflowEngine, None]:
    """WorkflowEngine fixture; the step scheduler is stopped afterwards."""
    workflow_engine = WorkflowEngine(
        db,
        WORKSPACE_ID,
        message_bus,
        memory=memory,
        executor=executor,
        scheduler=StepScheduler(workers=workflow_config.scheduler_workers),
        config=workflow_config,
    )
    yield workflow_engine
    await workflow_engine.stop()


@pytest.fixture
def team_executor(
    db: InMemoryDatabase,
    message_bus: MessageBus,
    memory: MemoryService,
    executor: MessageBusAgentExecutor,
) -> TeamExecutor:
    return TeamExecutor(db, WORKSPACE_ID, message_bus, memory, executor=executor)


@pytest.fixture
def orchestrator(
    db: InMemoryDatabase,
    message_bus: MessageBus,
    memory: MemoryService,
    engine: WorkflowEngine,
) -> Orchestrator:
    return Orchestrator(db, WORKSPACE_ID, message_bus, memory, workflow_engine=engine)


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def notifier(db: InMemoryDatabase, sink: InMemoryNotificationSink) -> AutonomyNotifier:
    return AutonomyNotifier(sink, db, WORKSPACE_ID, notify_user_ids=["admin_1"])


@pytest.fixture
def autonomy(db: InMemoryDatabase, notifier: AutonomyNotifier) -> AutonomyService:
    return AutonomyService(db, WORKSPACE_ID, config=AutonomyConfig(), notifier=notifier)


@pytest.fixture(scope="session")
def catalog() -> TemplateCatalog:
    """The bundled template catalog, loaded once."""
    return TemplateCatalog.load()


@pytest.fixture
def templates(db: InMemoryDatabase, catalog: TemplateCatalog) -> TemplateService:
    return TemplateService(db, WORKSPACE_ID, catalog)


# =============================================================================
# Seed helpers
# =============================================================================


@pytest.fixture
def seed_agent(db: InMemoryDatabase) -> Callable[..., Awaitable[Agent]]:
    """Factory fixture that inserts an agent."""

    async def _seed(name: str = "Agent", type: str = "general", **fields: Any) -> Agent:
        return await db.agents.insert(
            Agent(workspace_id=WORKSPACE_ID, name=name, type=type, **fields)
        )

    return _seed


@pytest.fixture
def seed_team(db: InMemoryDatabase) -> Callable[..., Awaitable[Team]]:
    """Factory fixture that inserts a team and its members.

    ``members`` is a list of (agent, role, priority) tuples.
    """

    async def _seed(
        name: str = "Team",
        members: list[tuple[Agent, TeamRole, int]] | None = None,
        **fields: Any,
    ) -> Team:
        team = await db.teams.insert(Team(workspace_id=WORKSPACE_ID, name=name, **fields))
        for agent, role, priority in members or []:
            await db.team_members.insert(
                TeamMember(team_id=team.id, agent_id=agent.id, role=role, priority=priority)
            )
        return team

    return _seed


@pytest.fixture
def seed_workflow(db: InMemoryDatabase) -> Callable[..., Awaitable[Workflow]]:
    """Factory fixture that inserts an active workflow."""

    async def _seed(
        steps: list[WorkflowStep],
        name: str = "Workflow",
        status: WorkflowStatus = WorkflowStatus.ACTIVE,
        **fields: Any,
    ) -> Workflow:
        return await db.workflows.insert(
            Workflow(
                workspace_id=WORKSPACE_ID, name=name, steps=steps, status=status, **fields
            )
        )

    return _seed
