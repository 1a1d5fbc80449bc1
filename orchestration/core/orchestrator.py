"""Orchestrator - Task routing and lightweight kickoffs.

Routes tasks to the best agent, delegates between agents, and starts teams
and workflows. Full multi-phase team coordination lives in TeamExecutor.
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from orchestration.models import (
    Agent,
    DelegationResult,
    MemoryCategory,
    MemoryTier,
    MessageContent,
    MessagePriority,
    MessageType,
    OrchestratorTask,
    SendMessageInput,
    TaskAssignment,
    TeamExecutionResult,
    TriggerType,
    WorkflowExecution,
    WorkflowResult,
)
from orchestration.persistence import Database
from orchestration.utils.exceptions import OrchestrationError
from orchestration.utils.logging import get_agent_logger, get_logger

from .memory import MemoryService
from .message_bus import MessageBus
from .workflow_engine import WorkflowEngine

logger = get_logger(__name__)

# Agent scoring weights
BASE_SCORE = 50
TYPE_MATCH_BONUS = 30
CAPABILITY_MATCH_WEIGHT = 20
TOOLS_BONUS = 10
RECENT_ACTIVITY_BONUS = 10
RECENT_ACTIVITY_WINDOW = timedelta(hours=24)

DELEGATION_IMPORTANCE = 70
OBJECTIVE_IMPORTANCE = 90
NO_AGENT_REASON = "No suitable agent found for this task type"


class Orchestrator:
    """Routes tasks to agents and kicks off team and workflow runs."""

    def __init__(
        self,
        db: Database,
        workspace_id: str,
        message_bus: MessageBus,
        memory: MemoryService,
        workflow_engine: WorkflowEngine | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            db: Database with agent and team repositories.
            workspace_id: Workspace every operation is scoped to.
            message_bus: Bus for delegation and broadcast messages.
            memory: Memory service for delegation and objective entries.
            workflow_engine: Engine the workflow methods delegate to.
        """
        self._db = db
        self.workspace_id = workspace_id
        self.message_bus = message_bus
        self.memory = memory
        self.workflow_engine = workflow_engine

    # ==========================================================================
    # Task routing
    # ==========================================================================

    async def route_task(self, task: OrchestratorTask) -> TaskAssignment:
        """Route a task to the most appropriate agent.

        A preferred active agent wins outright. Otherwise the search is
        restricted to the preferred team if one is given, or runs across
        the workspace.

        Returns:
            The assignment. When nothing matches, a zero-confidence
            assignment with an explanatory reason.
        """
        logger.info(
            "Routing task",
            workspace_id=self.workspace_id,
            task_type=task.task_type,
            priority=task.priority.value,
        )

        if task.preferred_agent_id:
            agent = await self._get_agent(task.preferred_agent_id)
            if agent is not None and agent.is_active:
                return TaskAssignment(
                    agent_id=agent.id,
                    agent_name=agent.name,
                    confidence=100,
                    reason="Preferred agent specified and available",
                )

        assignment = await self.select_agent(
            task.task_type,
            task.required_capabilities,
            team_id=task.preferred_team_id,
        )
        if assignment is not None:
            return assignment

        logger.warning(
            "No suitable agent found for task",
            workspace_id=self.workspace_id,
            task_type=task.task_type,
            team_id=task.preferred_team_id,
        )
        return TaskAssignment(
            agent_id="",
            agent_name="",
            team_id=task.preferred_team_id,
            confidence=0,
            reason=NO_AGENT_REASON,
        )

    async def select_agent(
        self,
        task_type: str,
        required_capabilities: list[str] | None = None,
        team_id: str | None = None,
    ) -> TaskAssignment | None:
        """Score active candidate agents and return the best one.

        Candidates are ordered by descending execution count, and the first
        of several equal scores wins. With ``team_id`` only that team's
        members are candidates.

        Returns:
            The assignment, or None if there is no active candidate.
        """
        try:
            member_ids: set[str] | None = None
            if team_id:
                members = await self._db.team_members.find_many(
                    where=lambda m: m.team_id == team_id
                )
                member_ids = {m.agent_id for m in members}
                if not member_ids:
                    return None

            candidates = await self._db.agents.find_many(
                where=lambda a: a.workspace_id == self.workspace_id
                and a.is_active
                and (member_ids is None or a.id in member_ids),
                order_by=lambda a: a.execution_count,
                descending=True,
            )
            if not candidates:
                return None

            now = datetime.now(UTC)
            best_agent = candidates[0]
            best_score = -1.0
            for agent in candidates:
                score = self.score_agent(agent, task_type, required_capabilities, now)
                if score > best_score:
                    best_agent, best_score = agent, score

            if team_id:
                assigned_team_id = team_id
            else:
                membership = await self._db.team_members.find_one(
                    lambda m: m.agent_id == best_agent.id
                )
                assigned_team_id = membership.team_id if membership else None
            team = await self._db.teams.get(assigned_team_id) if assigned_team_id else None

            return TaskAssignment(
                agent_id=best_agent.id,
                agent_name=best_agent.name,
                team_id=assigned_team_id,
                team_name=team.name if team else None,
                confidence=min(best_score, 100),
                reason=(
                    "Selected based on type match and capabilities "
                    f"(score: {best_score:g})"
                ),
            )
        except Exception:
            logger.error("Failed to select agent", task_type=task_type, exc_info=True)
            return None

    @staticmethod
    def score_agent(
        agent: Agent,
        task_type: str,
        required_capabilities: list[str] | None = None,
        now: datetime | None = None,
    ) -> float:
        """Routing score of one agent for a task type."""
        now = now or datetime.now(UTC)
        score: float = BASE_SCORE
        if agent.type == task_type:
            score += TYPE_MATCH_BONUS
        if required_capabilities and agent.capabilities:
            matched = sum(1 for cap in required_capabilities if cap in agent.capabilities)
            score += matched / len(required_capabilities) * CAPABILITY_MATCH_WEIGHT
        if agent.tools:
            score += TOOLS_BONUS
        if agent.last_executed_at and now - agent.last_executed_at < RECENT_ACTIVITY_WINDOW:
            score += RECENT_ACTIVITY_BONUS
        return score

    # ==========================================================================
    # Delegation
    # ==========================================================================

    async def delegate_task(
        self,
        from_agent_id: str,
        to_agent_id: str,
        description: str,
        data: dict[str, Any] | None = None,
    ) -> DelegationResult:
        """Send a task from one agent to another.

        The delegation is also written to the recipient's short-term memory
        so its next context pull sees it.
        """
        logger.info(
            "Delegating task",
            from_agent_id=from_agent_id,
            to_agent_id=to_agent_id,
        )
        try:
            message_id = await self.message_bus.send(
                SendMessageInput(
                    from_agent_id=from_agent_id,
                    to_agent_id=to_agent_id,
                    message_type=MessageType.TASK,
                    content=MessageContent(
                        subject="Delegated Task",
                        body=description,
                        data=data,
                        priority=MessagePriority.NORMAL,
                    ),
                )
            )
            now = datetime.now(UTC)
            await self.memory.store(
                f"delegated_task_{message_id}",
                {
                    "fromAgentId": from_agent_id,
                    "taskDescription": description,
                    "taskData": data,
                    "delegatedAt": now.isoformat(),
                },
                tier=MemoryTier.SHORT_TERM,
                category=MemoryCategory.CONTEXT,
                agent_id=to_agent_id,
                importance=DELEGATION_IMPORTANCE,
                expires_at=now + timedelta(hours=24),
                metadata={"source": "delegation"},
            )
        except Exception as e:
            logger.error(
                "Failed to delegate task",
                from_agent_id=from_agent_id,
                to_agent_id=to_agent_id,
                exc_info=True,
            )
            return DelegationResult(
                success=False,
                from_agent_id=from_agent_id,
                to_agent_id=to_agent_id,
                error=str(e),
            )

        get_agent_logger(to_agent_id).info(
            "Task delegated to agent",
            from_agent_id=from_agent_id,
            message_id=message_id,
        )
        return DelegationResult(
            success=True,
            from_agent_id=from_agent_id,
            to_agent_id=to_agent_id,
            message_id=message_id,
            task_id=message_id,
        )

    # ==========================================================================
    # Team kickoff
    # ==========================================================================

    async def run_team(self, team_id: str, objective: str) -> TeamExecutionResult:
        """Announce an objective to a team.

        Records the objective in team memory, broadcasts it and bumps the
        team's execution counter. Does not coordinate the members.
        """
        started = datetime.now(UTC)
        logger.info("Running team", team_id=team_id, objective=objective)

        def failed(error: str) -> TeamExecutionResult:
            return TeamExecutionResult(
                success=False,
                team_id=team_id,
                objective=objective,
                error=error,
                duration_ms=_elapsed_ms(started),
            )

        try:
            team = await self._db.teams.get(team_id)
            if team is None or team.workspace_id != self.workspace_id:
                return failed("Team not found")
            if not team.is_active:
                return failed(f"Team is not active (status: {team.status.value})")

            members = await self._db.team_members.find_many(
                where=lambda m: m.team_id == team_id,
                order_by=lambda m: m.priority,
            )
            if not members:
                return failed("Team has no members")

            await self.memory.store(
                f"objective_{int(started.timestamp() * 1000)}_{uuid.uuid4().hex[:6]}",
                {"objective": objective, "startedAt": started.isoformat()},
                tier=MemoryTier.SHORT_TERM,
                category=MemoryCategory.CONTEXT,
                team_id=team_id,
                importance=OBJECTIVE_IMPORTANCE,
                expires_at=started + timedelta(hours=24),
            )
            await self.message_bus.broadcast(
                team_id,
                MessageType.TASK,
                MessageContent(
                    subject="Team Objective",
                    body=objective,
                    priority=MessagePriority.HIGH,
                ),
            )
            now = datetime.now(UTC)
            await self._db.teams.modify(
                team_id,
                lambda t: {
                    "total_executions": t.total_executions + 1,
                    "last_active_at": now,
                    "updated_at": now,
                },
            )
        except Exception as e:
            logger.error("Failed to run team", team_id=team_id, exc_info=True)
            return failed(str(e))

        return TeamExecutionResult(
            success=True,
            team_id=team_id,
            objective=objective,
            duration_ms=_elapsed_ms(started),
            agents_involved=[m.agent_id for m in members],
            results={
                "membersNotified": len(members),
                "startedAt": started.isoformat(),
            },
        )

    # ==========================================================================
    # Workflow delegation
    # ==========================================================================

    async def execute_workflow(
        self,
        workflow_id: str,
        trigger_type: TriggerType = TriggerType.MANUAL,
        trigger_data: dict[str, Any] | None = None,
        initial_context: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        return await self._engine().execute(
            workflow_id, trigger_type, trigger_data, initial_context
        )

    async def pause_workflow(self, execution_id: str) -> WorkflowResult:
        """Pause an execution, reporting a rejected transition as a result."""
        try:
            execution = await self._engine().pause(execution_id)
        except OrchestrationError as e:
            return WorkflowResult(success=False, execution_id=execution_id, error=e.message)
        return self._workflow_result(execution)

    async def resume_workflow(self, execution_id: str) -> WorkflowResult:
        """Resume an execution, reporting a rejected transition as a result."""
        try:
            execution = await self._engine().resume(execution_id)
        except OrchestrationError as e:
            return WorkflowResult(success=False, execution_id=execution_id, error=e.message)
        return self._workflow_result(execution)

    async def get_execution_status(self, execution_id: str) -> WorkflowExecution | None:
        return await self._engine().get_execution_status(execution_id)

    async def complete_step(
        self,
        execution_id: str,
        step_id: str,
        success: bool,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> bool:
        return await self._engine().complete_step(
            execution_id, step_id, success, output, error
        )

    def _engine(self) -> WorkflowEngine:
        if self.workflow_engine is None:
            raise OrchestrationError("No workflow engine configured")
        return self.workflow_engine

    async def _get_agent(self, agent_id: str) -> Agent | None:
        agent = await self._db.agents.get(agent_id)
        if agent is None or agent.workspace_id != self.workspace_id:
            return None
        return agent

    @staticmethod
    def _workflow_result(execution: WorkflowExecution) -> WorkflowResult:
        return WorkflowResult(
            success=True,
            execution_id=execution.id,
            status=execution.status,
            completed_steps=execution.completed_steps,
            total_steps=execution.total_steps,
        )


def _elapsed_ms(started: datetime) -> int:
    return int((datetime.now(UTC) - started).total_seconds() * 1000)
