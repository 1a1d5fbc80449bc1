"""Workflow Engine - Executes declarative step graphs.

State machine per execution::

    running -> {paused <-> running} -> {completed | failed | cancelled}

Steps are dispatched to agents through an AgentExecutor and finish when the
completion callback (``complete_step``) arrives. The next step is never run
inline: it is queued on the StepScheduler, and the status is checked again
before dispatching, which makes pause and cancel take effect between steps.
"""

import asyncio
import re
from datetime import UTC, datetime, timedelta
from typing import Any

from orchestration.models import (
    DispatchRequest,
    ExecutionError,
    ExecutionStatus,
    MemoryCategory,
    MemoryTier,
    MessagePriority,
    RetryConfig,
    StepResult,
    StepStatus,
    TriggerType,
    Workflow,
    WorkflowExecution,
    WorkflowResult,
    WorkflowStatus,
    WorkflowStep,
)
from orchestration.persistence import Database
from orchestration.utils.config import WorkflowConfig
from orchestration.utils.exceptions import (
    DispatchError,
    InvalidStateError,
    NotFoundError,
    RetryExhaustedError,
)
from orchestration.utils.logging import get_logger, get_workflow_logger

from .conditions import evaluate_conditions
from .executor import AgentExecutor, MessageBusAgentExecutor
from .memory import MemoryService
from .message_bus import MessageBus
from .scheduler import StepScheduler

logger = get_logger(__name__)

EXECUTION_MEMORY_IMPORTANCE = 80
STALE_EXECUTION_ERROR = "Execution timed out (stale)"


def context_key(name: str) -> str:
    """Context key a step or agent output is merged under."""
    return re.sub(r"\s+", "_", name) + "_result"


def _elapsed_ms(started_at: datetime, now: datetime) -> int:
    return int((now - started_at).total_seconds() * 1000)


class WorkflowEngine:
    """Runs workflow executions for one workspace.

    Every entry point that starts work reports failures through the
    execution record (status and error) rather than raising.
    """

    def __init__(
        self,
        db: Database,
        workspace_id: str,
        message_bus: MessageBus,
        memory: MemoryService | None = None,
        executor: AgentExecutor | None = None,
        scheduler: StepScheduler | None = None,
        config: WorkflowConfig | None = None,
    ):
        """Initialize the engine.

        Args:
            db: Database with workflow, execution and agent repositories.
            workspace_id: Workspace every operation is scoped to.
            message_bus: Bus used by the default executor.
            memory: Optional memory service for execution context entries.
            executor: Agent executor; defaults to dispatching over the bus.
            scheduler: Step queue; a private one is created if omitted.
            config: Engine settings.
        """
        self._db = db
        self.workspace_id = workspace_id
        self._memory = memory
        self._config = config or WorkflowConfig()
        self._executor = executor or MessageBusAgentExecutor(db, message_bus)
        self._scheduler = scheduler or StepScheduler(
            workers=self._config.scheduler_workers
        )
        self._scheduler.bind(self._run_step, self._on_scheduler_error)

    @property
    def executor(self) -> AgentExecutor:
        return self._executor

    @property
    def scheduler(self) -> StepScheduler:
        return self._scheduler

    async def start(self) -> None:
        await self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()

    async def wait_idle(self) -> None:
        """Wait until no scheduled step is queued or running."""
        await self._scheduler.join()

    # ------------------------------------------------------------------
    # Execution lifecycle
    # ------------------------------------------------------------------

    async def execute(
        self,
        workflow_id: str,
        trigger_type: TriggerType = TriggerType.MANUAL,
        trigger_data: dict[str, Any] | None = None,
        initial_context: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        """Start a workflow and dispatch its first step.

        Args:
            workflow_id: Workflow to run.
            trigger_type: What started the run.
            trigger_data: Trigger payload, exposed as ``triggerData``.
            initial_context: Seed values for the execution context.

        Returns:
            WorkflowResult; ``success`` is False if the run could not start
            or failed on its first step.
        """
        workflow = await self._get_workflow(workflow_id)
        if workflow is None:
            return WorkflowResult(success=False, error="Workflow not found")
        if workflow.status != WorkflowStatus.ACTIVE:
            return WorkflowResult(
                success=False,
                error=f"Workflow is not active (status: {workflow.status.value})",
            )
        if not workflow.steps:
            return WorkflowResult(success=False, error="Workflow has no steps")

        first_step = workflow.steps[0]
        execution = WorkflowExecution(
            workspace_id=self.workspace_id,
            workflow_id=workflow.id,
            status=ExecutionStatus.RUNNING,
            current_step_id=first_step.id,
            total_steps=len(workflow.steps),
            context={**(initial_context or {}), "triggerData": trigger_data or {}},
            triggered_by=trigger_type,
            trigger_data=trigger_data,
        )

        try:
            execution = await self._db.executions.insert(execution)
            log = get_workflow_logger(workflow.id, execution.id)
            log.info(
                "Workflow execution started",
                workflow_name=workflow.name,
                trigger_type=trigger_type.value,
                total_steps=execution.total_steps,
            )

            await self._remember_execution(workflow, execution)
            now = datetime.now(UTC)
            await self._db.workflows.modify(
                workflow.id,
                lambda w: {
                    "total_executions": w.total_executions + 1,
                    "last_executed_at": now,
                },
            )

            await self._run_step(execution.id, first_step.id)
        except Exception as e:
            logger.error(
                "Failed to execute workflow", workflow_id=workflow_id, exc_info=True
            )
            await self._force_fail(execution.id, first_step.id, str(e))

        current = await self._db.executions.get(execution.id)
        if current is None:
            return WorkflowResult(
                success=False, execution_id=execution.id, error="Execution lost"
            )
        return self._to_result(current)

    async def execute_step(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
        context: dict[str, Any],
    ) -> StepResult:
        """Evaluate a step's conditions and dispatch it to its agent.

        Returns:
            ``skipped`` if the conditions do not hold, ``failed`` if the agent
            is missing/inactive or dispatch fails, otherwise ``running`` with
            the dispatch marker (message id and task id) as output.
        """
        started_at = datetime.now(UTC)

        if not evaluate_conditions(step.conditions, context):
            logger.info(
                "Step conditions not met, skipping",
                execution_id=execution.id,
                step_id=step.id,
            )
            return StepResult(
                step_id=step.id,
                status=StepStatus.SKIPPED,
                output={"reason": "Conditions not met"},
                started_at=started_at,
                completed_at=started_at,
                duration_ms=0,
            )

        agent = await self._db.agents.get(step.agent_id)
        if agent is None or agent.workspace_id != self.workspace_id:
            return self._failed(step, started_at, f"Agent not found: {step.agent_id}")
        if not agent.is_active:
            return self._failed(
                step,
                started_at,
                f"Agent is not active: {agent.name} (status: {agent.status.value})",
            )

        request = DispatchRequest.task(
            agent.id,
            subject=f"Workflow Step: {step.name}",
            body=f"Execute action: {step.action}",
            data={
                "stepId": step.id,
                "action": step.action,
                "inputs": step.inputs,
                "context": context,
                "executionId": execution.id,
                "workflowId": execution.workflow_id,
            },
            priority=MessagePriority.HIGH,
            execution_id=execution.id,
            step_id=step.id,
            timeout=step.timeout,
            retry_config=step.retry_config,
        )
        try:
            handle = await self._executor.dispatch(request)
        except DispatchError as e:
            logger.error(
                "Step dispatch failed",
                execution_id=execution.id,
                step_id=step.id,
                error=str(e),
            )
            return self._failed(step, started_at, e.message)

        now = datetime.now(UTC)
        await self._db.agents.modify(
            agent.id,
            lambda a: {
                "execution_count": a.execution_count + 1,
                "last_executed_at": now,
                "updated_at": now,
            },
        )

        return StepResult(
            step_id=step.id,
            status=StepStatus.RUNNING,
            task_id=handle.id,
            output={
                "dispatched": True,
                "messageId": handle.message_id,
                "taskId": handle.id,
                "agentId": agent.id,
                "agentName": agent.name,
                "action": step.action,
                "inputs": step.inputs,
            },
            started_at=started_at,
        )

    async def complete_step(
        self,
        execution_id: str,
        step_id: str,
        success: bool,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> bool:
        """Completion callback for a dispatched step.

        Idempotent: only the first completion of a pending dispatch is
        applied; duplicates and unknown steps return False.
        """
        handle = await self._executor.find_pending(execution_id, step_id)
        if handle is None:
            logger.info(
                "No pending dispatch for step completion",
                execution_id=execution_id,
                step_id=step_id,
            )
            return False

        completed = await self._executor.complete(handle.id, success, output, error)
        if completed is None:
            return False

        execution = await self._db.executions.get(execution_id)
        previous = execution.step_results.get(step_id) if execution else None
        now = datetime.now(UTC)
        started_at = previous.started_at if previous and previous.started_at else now
        result = StepResult(
            step_id=step_id,
            status=StepStatus.COMPLETED if success else StepStatus.FAILED,
            output=output or {},
            error=None if success else (error or "Step failed"),
            task_id=handle.id,
            retry_count=previous.retry_count if previous else 0,
            started_at=started_at,
            completed_at=now,
            duration_ms=_elapsed_ms(started_at, now),
        )
        await self.handle_step_complete(execution_id, step_id, result)
        return True

    async def handle_step_complete(
        self, execution_id: str, step_id: str, result: StepResult
    ) -> WorkflowExecution | None:
        """Record a finished step and route to the next one.

        completed/skipped follow ``on_success`` or fall through to the next
        declared step; failed follows ``on_failure`` or fails the execution.
        The next step is queued, not run inline. Any internal error
        force-fails the execution.
        """
        try:
            execution = await self._db.executions.get(execution_id)
            if execution is None:
                raise NotFoundError("WorkflowExecution", execution_id)
            workflow = await self._get_workflow(execution.workflow_id)
            if workflow is None:
                raise NotFoundError("Workflow", execution.workflow_id)
            step = workflow.get_step(step_id)
            if step is None:
                raise NotFoundError("WorkflowStep", step_id)

            routed: dict[str, Any] = {}
            updated = await self._db.executions.modify(
                execution_id, lambda e: self._route(workflow, step, e, result, routed)
            )
        except Exception as e:
            logger.error(
                "Failed to handle step completion",
                execution_id=execution_id,
                step_id=step_id,
                exc_info=True,
            )
            await self._force_fail(execution_id, step_id, str(e))
            return await self._db.executions.get(execution_id)

        if updated is None:
            return None

        log = get_workflow_logger(updated.workflow_id, updated.id)
        log.info(
            "Step completed",
            step_id=step_id,
            step_status=result.status.value,
            execution_status=updated.status.value,
            next_step_id=routed.get("next_step_id"),
            completed_steps=updated.completed_steps,
        )

        if routed.get("transition") == ExecutionStatus.COMPLETED:
            await self._db.workflows.modify(
                workflow.id,
                lambda w: {"successful_executions": w.successful_executions + 1},
            )
            log.info("Workflow execution completed", duration_ms=updated.duration_ms)
        elif routed.get("transition") == ExecutionStatus.FAILED:
            log.warning(
                "Workflow execution failed",
                error=updated.error.message if updated.error else None,
            )

        next_step_id = routed.get("next_step_id")
        if next_step_id and updated.status == ExecutionStatus.RUNNING:
            await self._scheduler.submit(execution_id, next_step_id)
        return updated

    async def pause(self, execution_id: str) -> WorkflowExecution:
        """Pause a running execution; takes effect before the next dispatch.

        Raises:
            NotFoundError: If the execution does not exist.
            InvalidStateError: If the execution is not running.
        """

        def transition(execution: WorkflowExecution) -> dict[str, Any]:
            if execution.status != ExecutionStatus.RUNNING:
                raise InvalidStateError(
                    f"Cannot pause execution with status: {execution.status.value}",
                    current_state=execution.status.value,
                )
            return {"status": ExecutionStatus.PAUSED}

        updated = await self._transition(execution_id, transition)
        logger.info("Workflow execution paused", execution_id=execution_id)
        return updated

    async def resume(self, execution_id: str) -> WorkflowExecution:
        """Resume a paused execution by re-running its current step.

        A step whose dispatch is still awaiting completion is not dispatched
        again; its completion will continue the execution.

        Raises:
            NotFoundError: If the execution does not exist.
            InvalidStateError: If the execution is not paused.
        """

        def transition(execution: WorkflowExecution) -> dict[str, Any]:
            if execution.status != ExecutionStatus.PAUSED:
                raise InvalidStateError(
                    f"Cannot resume execution with status: {execution.status.value}",
                    current_state=execution.status.value,
                )
            return {"status": ExecutionStatus.RUNNING}

        updated = await self._transition(execution_id, transition)
        logger.info(
            "Workflow execution resumed",
            execution_id=execution_id,
            current_step_id=updated.current_step_id,
        )

        step_id = updated.current_step_id
        if step_id and await self._executor.find_pending(execution_id, step_id) is None:
            await self._scheduler.submit(execution_id, step_id)
        return updated

    async def cancel(self, execution_id: str) -> WorkflowExecution:
        """Cancel a running or paused execution.

        Raises:
            NotFoundError: If the execution does not exist.
            InvalidStateError: If the execution is already terminal.
        """
        now = datetime.now(UTC)

        def transition(execution: WorkflowExecution) -> dict[str, Any]:
            if execution.status.is_terminal:
                raise InvalidStateError(
                    f"Cannot cancel execution with status: {execution.status.value}",
                    current_state=execution.status.value,
                )
            return {
                "status": ExecutionStatus.CANCELLED,
                "completed_at": now,
                "duration_ms": _elapsed_ms(execution.started_at, now),
            }

        updated = await self._transition(execution_id, transition)
        logger.info("Workflow execution cancelled", execution_id=execution_id)
        return updated

    async def retry_step(self, execution_id: str, step_id: str) -> StepResult:
        """Dispatch a step again, honouring its retry policy.

        Waits ``backoff_ms * attempt`` before dispatching. Once the step has
        used ``max_attempts`` retries, a failed result carrying the
        "Max retry attempts (N) exceeded" error is recorded and returned.
        Retrying reopens a failed execution.

        Raises:
            NotFoundError: If the execution, workflow or step does not exist.
            InvalidStateError: If the execution is completed or cancelled.
        """
        execution = await self._db.executions.get(execution_id)
        if execution is None or execution.workspace_id != self.workspace_id:
            raise NotFoundError("WorkflowExecution", execution_id)
        if execution.status in (ExecutionStatus.COMPLETED, ExecutionStatus.CANCELLED):
            raise InvalidStateError(
                f"Cannot retry step for execution with status: {execution.status.value}",
                current_state=execution.status.value,
            )
        workflow = await self._get_workflow(execution.workflow_id)
        step = workflow.get_step(step_id) if workflow else None
        if step is None:
            raise NotFoundError("WorkflowStep", step_id)

        retry_config = step.retry_config or RetryConfig(
            max_attempts=self._config.default_max_attempts,
            backoff_ms=self._config.default_backoff_ms,
        )
        previous = execution.step_results.get(step_id)
        retry_count = previous.retry_count if previous else 0

        if retry_count >= retry_config.max_attempts:
            exhausted = RetryExhaustedError(step_id, retry_config.max_attempts)
            now = datetime.now(UTC)
            result = StepResult(
                step_id=step_id,
                status=StepStatus.FAILED,
                error=exhausted.message,
                retry_count=retry_count,
                started_at=now,
                completed_at=now,
                duration_ms=0,
            )
            await self._db.executions.modify(
                execution_id,
                lambda e: {"step_results": {**e.step_results, step_id: result}},
            )
            logger.warning(
                "Retry attempts exhausted",
                execution_id=execution_id,
                step_id=step_id,
                max_attempts=retry_config.max_attempts,
            )
            return result

        delay_ms = retry_config.backoff_ms * (retry_count + 1)
        logger.info(
            "Retrying step",
            execution_id=execution_id,
            step_id=step_id,
            attempt=retry_count + 1,
            delay_ms=delay_ms,
        )
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

        stale = await self._executor.find_pending(execution_id, step_id)
        if stale is not None:
            await self._executor.complete(
                stale.id, False, error="Superseded by retry"
            )

        reopened = await self._db.executions.update(
            execution_id,
            status=ExecutionStatus.RUNNING,
            current_step_id=step_id,
            error=None,
            completed_at=None,
            duration_ms=None,
        )
        if reopened is None:
            raise NotFoundError("WorkflowExecution", execution_id)
        return await self._dispatch_and_record(reopened, step, retry_count + 1)

    # ------------------------------------------------------------------
    # Queries and maintenance
    # ------------------------------------------------------------------

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        execution = await self._db.executions.get(execution_id)
        if execution is None or execution.workspace_id != self.workspace_id:
            return None
        return execution

    async def get_execution_status(self, execution_id: str) -> WorkflowExecution | None:
        """Current state of an execution, or None if it does not exist."""
        return await self.get_execution(execution_id)

    async def list_executions(
        self, workflow_id: str, limit: int | None = None
    ) -> list[WorkflowExecution]:
        """Executions of a workflow, newest first."""
        try:
            return await self._db.executions.find_many(
                where=lambda e: e.workspace_id == self.workspace_id
                and e.workflow_id == workflow_id,
                order_by=lambda e: e.started_at,
                descending=True,
                limit=limit or self._config.list_limit,
            )
        except Exception:
            logger.error("Failed to list executions", workflow_id=workflow_id, exc_info=True)
            return []

    async def fail_stale_executions(self, max_age_hours: int | None = None) -> int:
        """Fail running executions started more than ``max_age_hours`` ago.

        Returns:
            Number of executions failed.
        """
        max_age = max_age_hours or self._config.stale_execution_hours
        cutoff = datetime.now(UTC) - timedelta(hours=max_age)
        stale = await self._db.executions.find_many(
            where=lambda e: e.workspace_id == self.workspace_id
            and e.status == ExecutionStatus.RUNNING
            and e.started_at < cutoff
        )
        failed = 0
        for execution in stale:
            if await self._force_fail(
                execution.id, execution.current_step_id, STALE_EXECUTION_ERROR
            ):
                failed += 1
        if failed:
            logger.warning("Failed stale executions", count=failed, max_age_hours=max_age)
        return failed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_step(self, execution_id: str, step_id: str) -> None:
        """Scheduler entry point: dispatch one step if the execution still runs."""
        execution = await self._db.executions.get(execution_id)
        if execution is None:
            logger.warning("Scheduled step for unknown execution", execution_id=execution_id)
            return
        if execution.status != ExecutionStatus.RUNNING:
            logger.info(
                "Execution not running, step not started",
                execution_id=execution_id,
                step_id=step_id,
                status=execution.status.value,
            )
            return

        workflow = await self._get_workflow(execution.workflow_id)
        step = workflow.get_step(step_id) if workflow else None
        if step is None:
            await self._force_fail(execution_id, step_id, f"Step not found: {step_id}")
            return

        if execution.current_step_id != step_id:
            updated = await self._db.executions.update(
                execution_id, current_step_id=step_id
            )
            execution = updated or execution
        await self._dispatch_and_record(execution, step, retry_count=0)

    async def _dispatch_and_record(
        self, execution: WorkflowExecution, step: WorkflowStep, retry_count: int
    ) -> StepResult:
        result = await self.execute_step(execution, step, execution.context)
        result = result.model_copy(update={"retry_count": retry_count})

        if result.status != StepStatus.RUNNING:
            await self.handle_step_complete(execution.id, step.id, result)
            return result

        await self._db.executions.modify(
            execution.id,
            lambda e: {"step_results": {**e.step_results, step.id: result}},
        )
        if self._config.auto_complete:
            await self.complete_step(
                execution.id, step.id, success=True, output=result.output
            )
        return result

    def _route(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        execution: WorkflowExecution,
        result: StepResult,
        routed: dict[str, Any],
    ) -> dict[str, Any]:
        """Compute the execution changes for a finished step (runs under lock)."""
        step_results = {**execution.step_results, step.id: result}
        context = {
            **execution.context,
            context_key(step.name): result.output,
            "lastStepId": step.id,
            "lastStepStatus": result.status.value,
        }
        changes: dict[str, Any] = {
            "step_results": step_results,
            "context": context,
            "completed_steps": sum(
                1 for r in step_results.values() if r.status.is_success
            ),
        }
        # A late completion on a finished execution is recorded, not routed
        if execution.status.is_terminal:
            return changes
        if not (result.status.is_success or result.status == StepStatus.FAILED):
            return changes

        now = datetime.now(UTC)
        error: ExecutionError | None = None
        next_step_id: str | None = None

        if result.status.is_success:
            if step.on_success:
                next_step_id = step.on_success
            else:
                following = workflow.next_step_after(step.id)
                next_step_id = following.id if following else None
        else:
            next_step_id = step.on_failure
            if not next_step_id:
                error = ExecutionError(
                    message=result.error or "Step failed",
                    step=step.id,
                    details=result.output,
                )

        if next_step_id and workflow.get_step(next_step_id) is None:
            error = ExecutionError(
                message=f"Step not found: {next_step_id}", step=step.id
            )
            next_step_id = None

        if next_step_id:
            changes["current_step_id"] = next_step_id
            routed["next_step_id"] = next_step_id
            return changes

        terminal = ExecutionStatus.FAILED if error else ExecutionStatus.COMPLETED
        changes.update(
            status=terminal,
            error=error,
            completed_at=now,
            duration_ms=_elapsed_ms(execution.started_at, now),
        )
        if terminal == ExecutionStatus.COMPLETED:
            changes["current_step_id"] = None
        routed["transition"] = terminal
        return changes

    async def _transition(self, execution_id: str, transition: Any) -> WorkflowExecution:
        execution = await self.get_execution(execution_id)
        if execution is None:
            raise NotFoundError("WorkflowExecution", execution_id)
        updated = await self._db.executions.modify(execution_id, transition)
        if updated is None:
            raise NotFoundError("WorkflowExecution", execution_id)
        return updated

    async def _force_fail(
        self, execution_id: str, step_id: str | None, message: str
    ) -> bool:
        """Move a non-terminal execution to failed; never raises."""
        now = datetime.now(UTC)
        failed = False

        def fail(execution: WorkflowExecution) -> dict[str, Any] | None:
            nonlocal failed
            if execution.status.is_terminal:
                return None
            failed = True
            return {
                "status": ExecutionStatus.FAILED,
                "error": ExecutionError(message=message, step=step_id),
                "completed_at": now,
                "duration_ms": _elapsed_ms(execution.started_at, now),
            }

        try:
            await self._db.executions.modify(execution_id, fail)
        except Exception:
            logger.error(
                "Failed to mark execution as failed",
                execution_id=execution_id,
                exc_info=True,
            )
            return False
        if failed:
            logger.warning(
                "Execution force-failed",
                execution_id=execution_id,
                step_id=step_id,
                error=message,
            )
        return failed

    async def _on_scheduler_error(
        self, execution_id: str, step_id: str, error: Exception
    ) -> None:
        await self._force_fail(execution_id, step_id, str(error))

    async def _get_workflow(self, workflow_id: str) -> Workflow | None:
        workflow = await self._db.workflows.get(workflow_id)
        if workflow is None or workflow.workspace_id != self.workspace_id:
            return None
        return workflow

    async def _remember_execution(
        self, workflow: Workflow, execution: WorkflowExecution
    ) -> None:
        if self._memory is None:
            return
        try:
            await self._memory.store(
                f"workflow_execution_{execution.id}",
                {
                    "workflowId": workflow.id,
                    "workflowName": workflow.name,
                    "executionId": execution.id,
                    "triggerType": execution.triggered_by.value,
                    "startedAt": execution.started_at.isoformat(),
                },
                tier=MemoryTier.SHORT_TERM,
                category=MemoryCategory.CONTEXT,
                team_id=workflow.team_id,
                importance=EXECUTION_MEMORY_IMPORTANCE,
            )
        except Exception:
            logger.warning(
                "Could not store execution context", execution_id=execution.id
            )

    @staticmethod
    def _failed(step: WorkflowStep, started_at: datetime, error: str) -> StepResult:
        now = datetime.now(UTC)
        return StepResult(
            step_id=step.id,
            status=StepStatus.FAILED,
            error=error,
            started_at=started_at,
            completed_at=now,
            duration_ms=_elapsed_ms(started_at, now),
        )

    @staticmethod
    def _to_result(execution: WorkflowExecution) -> WorkflowResult:
        return WorkflowResult(
            success=execution.status != ExecutionStatus.FAILED,
            execution_id=execution.id,
            status=execution.status,
            completed_steps=execution.completed_steps,
            total_steps=execution.total_steps,
            error=execution.error.message if execution.error else None,
        )
