"""Team Executor - Coordinates one team run through fixed phases.

A run moves through::

    validate -> initialize -> coordinate -> broadcast
             -> coordinator -> specialists -> support -> finalize -> completed

Any phase may end in ``failed``. Each phase is a method that receives the
TeamExecutionState and returns the next phase, so phases can be tested on
their own.

"Executing" an agent dispatches a task to it. The run records the dispatch;
the agent's real outcome arrives later through ``complete_agent_task``.
"""

import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from orchestration.models import (
    AgentExecutionResult,
    DispatchRequest,
    HandoffContext,
    MemoryCategory,
    MemoryTier,
    MessageContent,
    MessageType,
    SendMessageInput,
    TeamExecutionResult,
    TeamExecutionState,
    TeamMemberInfo,
    TeamPhase,
    TeamRole,
    TeamTask,
)
from orchestration.persistence import Database
from orchestration.utils.exceptions import DispatchError, OrchestrationError
from orchestration.utils.logging import get_logger, get_team_logger

from .executor import AgentExecutor, MessageBusAgentExecutor
from .memory import MemoryService
from .message_bus import MessageBus
from .workflow_engine import context_key

logger = get_logger(__name__)

EXECUTION_CONTEXT_IMPORTANCE = 90
EXECUTION_SUMMARY_IMPORTANCE = 60
AGENT_RESULT_IMPORTANCE = 70

PhaseHandler = Callable[[TeamExecutionState], Awaitable[TeamPhase]]


class TeamValidationError(OrchestrationError):
    """Raised when a team cannot be run (missing, inactive or empty)."""

    pass


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def _elapsed_ms(started_at: datetime) -> int:
    return int((datetime.now(UTC) - started_at).total_seconds() * 1000)


class TeamExecutor:
    """Runs teams against an objective and relays context between members."""

    def __init__(
        self,
        db: Database,
        workspace_id: str,
        message_bus: MessageBus,
        memory: MemoryService,
        executor: AgentExecutor | None = None,
    ):
        """Initialize the team executor.

        Args:
            db: Database with team, member and agent repositories.
            workspace_id: Workspace every operation is scoped to.
            message_bus: Bus for coordinator, broadcast and handoff messages.
            memory: Memory service for execution context and summaries.
            executor: Agent executor; defaults to dispatching over the bus.
        """
        self._db = db
        self.workspace_id = workspace_id
        self.message_bus = message_bus
        self.memory = memory
        self.executor = executor or MessageBusAgentExecutor(db, message_bus)
        self._phases: dict[TeamPhase, PhaseHandler] = {
            TeamPhase.VALIDATE: self._validate,
            TeamPhase.INITIALIZE: self._initialize,
            TeamPhase.COORDINATE: self._notify_coordinator,
            TeamPhase.BROADCAST: self._broadcast_objective,
            TeamPhase.COORDINATOR: self._run_coordinator,
            TeamPhase.SPECIALISTS: self._run_specialists,
            TeamPhase.SUPPORT: self._run_support,
            TeamPhase.FINALIZE: self._finalize,
        }

    # ==========================================================================
    # Team execution
    # ==========================================================================

    async def run(self, team_id: str, task: TeamTask | str) -> TeamExecutionResult:
        """Run a team against an objective.

        Never raises: failures in any phase are returned as a failed result.

        Args:
            team_id: Team to run.
            task: The task, or a bare objective string.

        Returns:
            TeamExecutionResult whose ``results`` hold ``agentResults`` in
            execution order, the final ``state`` and a text ``summary``.
        """
        if isinstance(task, str):
            task = TeamTask(objective=task)

        state = TeamExecutionState(
            execution_id=str(uuid.uuid4()),
            team_id=team_id,
            task=task,
            shared_context=dict(task.context),
            started_at=datetime.now(UTC),
        )
        log = get_team_logger(team_id, state.execution_id)
        log.info("Starting team execution", objective=task.objective)

        state = await self.advance(state)

        if state.phase == TeamPhase.FAILED:
            return TeamExecutionResult(
                success=False,
                team_id=team_id,
                objective=task.objective,
                execution_id=state.execution_id,
                error=state.error,
                duration_ms=_elapsed_ms(state.started_at),
            )

        duration_ms = _elapsed_ms(state.started_at)
        agent_ids = [member.agent_id for member in state.members]
        log.info(
            "Team execution completed",
            duration_ms=duration_ms,
            agents_involved=agent_ids,
        )
        return TeamExecutionResult(
            success=True,
            team_id=team_id,
            objective=task.objective,
            execution_id=state.execution_id,
            duration_ms=duration_ms,
            agents_involved=agent_ids,
            results={
                "state": state.model_dump(mode="json"),
                "agentResults": [
                    result.model_dump(mode="json") for result in state.agent_results
                ],
                "summary": self.summarize(state.agent_results),
            },
        )

    async def advance(self, state: TeamExecutionState) -> TeamExecutionState:
        """Drive ``state`` from its current phase to completed or failed."""
        while state.phase not in (TeamPhase.COMPLETED, TeamPhase.FAILED):
            handler = self._phases[state.phase]
            try:
                next_phase = await handler(state)
            except TeamValidationError as e:
                state.error = e.message
                state.phase = TeamPhase.FAILED
                break
            except Exception as e:
                logger.error(
                    "Team execution failed",
                    team_id=state.team_id,
                    phase=state.phase.value,
                    exc_info=True,
                )
                state.error = str(e)
                state.phase = TeamPhase.FAILED
                await self._update_team_metrics(state.team_id, success=False)
                break
            state.phases_completed.append(state.phase)
            state.phase = next_phase

        return state

    async def coordinate(
        self,
        team_id: str,
        task: TeamTask,
        agent_ids: list[str] | None = None,
    ) -> list[AgentExecutionResult]:
        """Execute members strictly in priority order, threading context.

        Raises:
            OrchestrationError: If there are no agents to coordinate.
        """
        members = await self.get_team_members(team_id)
        if agent_ids:
            members = [m for m in members if m.agent_id in agent_ids]
        if not members:
            raise OrchestrationError("No agents to coordinate")

        results: list[AgentExecutionResult] = []
        shared_context = dict(task.context)
        for member in members:
            result = await self.execute_agent(
                member, task.objective, shared_context, team_id=team_id
            )
            results.append(result)
            if result.success and result.output:
                shared_context = {
                    **shared_context,
                    f"{member.agent_name}_output": result.output,
                }
        return results

    async def handoff(self, context: HandoffContext) -> bool:
        """Hand work from one agent to another.

        Sends a handoff message, shares the context through memory and
        sends a follow-up task message. Returns False on any failure.
        """
        logger.info(
            "Processing handoff",
            from_agent_id=context.from_agent_id,
            to_agent_id=context.to_agent_id,
        )
        try:
            await self.message_bus.send(
                SendMessageInput(
                    from_agent_id=context.from_agent_id,
                    to_agent_id=context.to_agent_id,
                    team_id=context.team_id,
                    message_type=MessageType.HANDOFF,
                    content=MessageContent(
                        subject="Task Handoff",
                        body=context.task_description,
                        data={
                            "context": context.context,
                            "previousResults": context.previous_results,
                        },
                        priority=context.priority,
                    ),
                )
            )
            await self.memory.share_context(
                context.from_agent_id,
                context.to_agent_id,
                {
                    "handoffTask": context.task_description,
                    "handoffContext": context.context,
                    "previousResults": context.previous_results,
                    "handoffAt": datetime.now(UTC).isoformat(),
                },
            )
            await self.message_bus.send(
                SendMessageInput(
                    from_agent_id=context.from_agent_id,
                    to_agent_id=context.to_agent_id,
                    team_id=context.team_id,
                    message_type=MessageType.TASK,
                    content=MessageContent(
                        subject="Handoff Task Ready",
                        body=(
                            "You have received a task handoff: "
                            f"{context.task_description}"
                        ),
                        data=context.context,
                        priority=context.priority,
                    ),
                )
            )
        except Exception:
            logger.error(
                "Handoff failed",
                from_agent_id=context.from_agent_id,
                to_agent_id=context.to_agent_id,
                exc_info=True,
            )
            return False

        logger.info(
            "Handoff completed",
            from_agent_id=context.from_agent_id,
            to_agent_id=context.to_agent_id,
        )
        return True

    async def execute_agent(
        self,
        member: TeamMemberInfo,
        objective: str,
        context: dict[str, Any],
        team_id: str | None = None,
    ) -> AgentExecutionResult:
        """Dispatch a team task to one member.

        ``success`` reports the dispatch. The output carries the message id
        and task id the completion callback is keyed by.
        """
        started_at = datetime.now(UTC)
        task_id = f"team_task_{_now_ms()}_{member.agent_id}_{uuid.uuid4().hex[:6]}"
        try:
            handle = await self.executor.dispatch(
                DispatchRequest.task(
                    member.agent_id,
                    subject="Team Task",
                    body=objective,
                    data={
                        "context": context,
                        "taskId": task_id,
                        "role": member.role.value,
                    },
                    team_id=team_id,
                    task_id=task_id,
                )
            )
        except DispatchError as e:
            return AgentExecutionResult(
                agent_id=member.agent_id,
                agent_name=member.agent_name,
                success=False,
                error=e.message,
                duration_ms=_elapsed_ms(started_at),
            )

        return AgentExecutionResult(
            agent_id=member.agent_id,
            agent_name=member.agent_name,
            success=True,
            output={
                "messageId": handle.message_id,
                "taskId": handle.id,
                "message": f"Task delegated to {member.agent_name}: {objective}",
            },
            duration_ms=_elapsed_ms(started_at),
        )

    async def complete_agent_task(
        self,
        task_id: str,
        success: bool,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> bool:
        """Completion callback for a dispatched team task.

        Records the outcome in team memory. Duplicate or unknown
        completions return False.
        """
        handle = await self.executor.complete(task_id, success, output, error)
        if handle is None:
            return False

        try:
            await self.memory.store(
                f"agent_result_{task_id}",
                {
                    "taskId": task_id,
                    "agentId": handle.agent_id,
                    "success": success,
                    "output": output,
                    "error": error,
                    "completedAt": datetime.now(UTC).isoformat(),
                },
                tier=MemoryTier.SHORT_TERM,
                category=MemoryCategory.CONTEXT,
                team_id=handle.team_id,
                importance=AGENT_RESULT_IMPORTANCE,
            )
        except Exception:
            logger.warning("Could not store agent result", task_id=task_id)

        logger.info(
            "Agent task completed",
            task_id=task_id,
            agent_id=handle.agent_id,
            team_id=handle.team_id,
            success=success,
        )
        return True

    async def get_team_members(self, team_id: str) -> list[TeamMemberInfo]:
        """Team members joined with their agents, ordered by priority."""
        members = await self._db.team_members.find_many(
            where=lambda m: m.team_id == team_id,
            order_by=lambda m: m.priority,
        )
        result: list[TeamMemberInfo] = []
        for member in members:
            agent = await self._db.agents.get(member.agent_id)
            if agent is None or agent.workspace_id != self.workspace_id:
                continue
            result.append(
                TeamMemberInfo(
                    member_id=member.id,
                    agent_id=agent.id,
                    agent_name=agent.name,
                    agent_type=agent.type,
                    role=member.role,
                    priority=member.priority,
                    status=agent.status,
                    capabilities=agent.capabilities,
                )
            )
        return result

    @staticmethod
    def summarize(results: list[AgentExecutionResult]) -> str:
        """Plain-text summary of a run's agent results."""
        succeeded = sum(1 for r in results if r.success)
        total_duration = sum(r.duration_ms for r in results)
        lines = [
            "Team Execution Summary:",
            f"- Agents involved: {len(results)}",
            f"- Successful: {succeeded}/{len(results)}",
            f"- Total duration: {total_duration}ms",
            "",
            "Agent Results:",
        ]
        lines.extend(
            f"- {r.agent_name}: {'Success' if r.success else 'Failed'}" for r in results
        )
        return "\n".join(lines)

    # ==========================================================================
    # Phases
    # ==========================================================================

    async def _validate(self, state: TeamExecutionState) -> TeamPhase:
        team = await self._db.teams.get(state.team_id)
        if team is None or team.workspace_id != self.workspace_id:
            raise TeamValidationError("Team not found")
        if not team.is_active:
            raise TeamValidationError(
                f"Team is not active (status: {team.status.value})"
            )
        members = await self.get_team_members(state.team_id)
        if not members:
            raise TeamValidationError("Team has no members")

        state.team_name = team.name
        state.members = members
        return TeamPhase.INITIALIZE

    async def _initialize(self, state: TeamExecutionState) -> TeamPhase:
        now = datetime.now(UTC)
        await self.memory.store(
            f"execution_{state.execution_id}",
            {
                "executionId": state.execution_id,
                "objective": state.task.objective,
                "priority": state.task.priority.value,
                "context": state.task.context,
                "members": [
                    {"agentId": m.agent_id, "name": m.agent_name, "role": m.role.value}
                    for m in state.members
                ],
                "startedAt": now.isoformat(),
            },
            tier=MemoryTier.SHORT_TERM,
            category=MemoryCategory.CONTEXT,
            team_id=state.team_id,
            importance=EXECUTION_CONTEXT_IMPORTANCE,
            expires_at=now + timedelta(hours=24),
        )
        return TeamPhase.COORDINATE

    async def _notify_coordinator(self, state: TeamExecutionState) -> TeamPhase:
        coordinator = self._coordinator(state)
        if coordinator is None:
            return TeamPhase.BROADCAST

        task = state.task
        await self.message_bus.send(
            SendMessageInput(
                to_agent_id=coordinator.agent_id,
                team_id=state.team_id,
                message_type=MessageType.TASK,
                content=MessageContent(
                    subject="Team Objective Assigned",
                    body=f"New objective: {task.objective}",
                    data={
                        "objective": task.objective,
                        "priority": task.priority.value,
                        "context": task.context,
                        "teamMembers": [
                            {
                                "agentId": m.agent_id,
                                "name": m.agent_name,
                                "role": m.role.value,
                                "capabilities": m.capabilities,
                            }
                            for m in state.members
                        ],
                    },
                    priority=task.priority,
                ),
            )
        )
        return TeamPhase.BROADCAST

    async def _broadcast_objective(self, state: TeamExecutionState) -> TeamPhase:
        task = state.task
        await self.message_bus.broadcast(
            state.team_id,
            MessageType.CONTEXT,
            MessageContent(
                subject="Team Objective",
                body=task.objective,
                data={
                    "priority": task.priority.value,
                    "context": task.context,
                    "deadline": task.deadline.isoformat() if task.deadline else None,
                },
                priority=task.priority,
            ),
        )
        return TeamPhase.COORDINATOR

    async def _run_coordinator(self, state: TeamExecutionState) -> TeamPhase:
        coordinator = self._coordinator(state)
        if coordinator is None or not coordinator.is_active:
            return TeamPhase.SPECIALISTS

        logger.info(
            "Executing coordinator",
            agent_id=coordinator.agent_id,
            agent_name=coordinator.agent_name,
        )
        result = await self.execute_agent(
            coordinator, state.task.objective, state.shared_context, state.team_id
        )
        state.agent_results.append(result)
        if result.success and result.output:
            state.shared_context = {
                **state.shared_context,
                "coordinatorAnalysis": result.output,
            }
        return TeamPhase.SPECIALISTS

    async def _run_specialists(self, state: TeamExecutionState) -> TeamPhase:
        required = state.task.required_capabilities
        specialists = [m for m in state.members if m.role == TeamRole.SPECIALIST]

        for specialist in specialists:
            if not specialist.is_active:
                continue
            if required and not set(required) & set(specialist.capabilities):
                continue

            logger.info(
                "Executing specialist",
                agent_id=specialist.agent_id,
                agent_name=specialist.agent_name,
            )
            result = await self.execute_agent(
                specialist, state.task.objective, state.shared_context, state.team_id
            )
            state.agent_results.append(result)
            if result.success and result.output:
                state.shared_context = {
                    **state.shared_context,
                    context_key(specialist.agent_name): result.output,
                }

            following = next(
                (
                    s
                    for s in specialists
                    if s.priority > specialist.priority and s.is_active
                ),
                None,
            )
            if following is not None and result.success:
                await self.handoff(
                    HandoffContext(
                        from_agent_id=specialist.agent_id,
                        to_agent_id=following.agent_id,
                        task_description=f"Continue work on: {state.task.objective}",
                        context=state.shared_context,
                        priority=state.task.priority,
                        previous_results=[result.output] if result.output else [],
                        team_id=state.team_id,
                    )
                )
        return TeamPhase.SUPPORT

    async def _run_support(self, state: TeamExecutionState) -> TeamPhase:
        for support in state.members:
            if support.role != TeamRole.SUPPORT or not support.is_active:
                continue
            logger.info(
                "Executing support agent",
                agent_id=support.agent_id,
                agent_name=support.agent_name,
            )
            result = await self.execute_agent(
                support,
                f"Support for: {state.task.objective}",
                state.shared_context,
                state.team_id,
            )
            state.agent_results.append(result)
        return TeamPhase.FINALIZE

    async def _finalize(self, state: TeamExecutionState) -> TeamPhase:
        results = state.agent_results
        await self.memory.store(
            f"execution_summary_{state.execution_id}",
            {
                "executionId": state.execution_id,
                "objective": state.task.objective,
                "successCount": sum(1 for r in results if r.success),
                "failureCount": sum(1 for r in results if not r.success),
                "totalAgents": len(results),
                "durationMs": _elapsed_ms(state.started_at),
                "completedAt": datetime.now(UTC).isoformat(),
                "agentResults": [
                    {
                        "agentId": r.agent_id,
                        "agentName": r.agent_name,
                        "success": r.success,
                        "durationMs": r.duration_ms,
                    }
                    for r in results
                ],
            },
            tier=MemoryTier.MEDIUM_TERM,
            category=MemoryCategory.PATTERN,
            team_id=state.team_id,
            importance=EXECUTION_SUMMARY_IMPORTANCE,
        )
        await self._update_team_metrics(state.team_id, success=True)
        return TeamPhase.COMPLETED

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _coordinator(state: TeamExecutionState) -> TeamMemberInfo | None:
        return next(
            (m for m in state.members if m.role == TeamRole.COORDINATOR), None
        )

    async def _update_team_metrics(self, team_id: str, success: bool) -> None:
        now = datetime.now(UTC)
        try:
            await self._db.teams.modify(
                team_id,
                lambda t: {
                    "total_executions": t.total_executions + 1,
                    "successful_executions": t.successful_executions
                    + (1 if success else 0),
                    "last_active_at": now,
                    "updated_at": now,
                },
            )
        except Exception:
            logger.error("Failed to update team metrics", team_id=team_id, exc_info=True)
