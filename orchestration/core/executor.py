"""Agent Executor - Dispatch boundary between the core and real agent work.

The core never runs agent logic. It dispatches a task and records a pending
handle; the external executor later reports the outcome through ``complete``,
which transitions the handle exactly once.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from orchestration.models import (
    DispatchHandle,
    DispatchRequest,
    DispatchStatus,
    SendMessageInput,
)
from orchestration.persistence import Database
from orchestration.utils.exceptions import DispatchError
from orchestration.utils.logging import get_logger

from .message_bus import MessageBus

logger = get_logger(__name__)


class AgentExecutor(ABC):
    """Interface for handing tasks to agents."""

    @abstractmethod
    async def dispatch(self, request: DispatchRequest) -> DispatchHandle:
        """Hand a task to an agent.

        Args:
            request: What to send and how to key its completion.

        Returns:
            A pending handle.

        Raises:
            DispatchError: If the task could not be handed over.
        """
        pass

    @abstractmethod
    async def complete(
        self,
        task_id: str,
        success: bool,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> DispatchHandle | None:
        """Record the outcome of a dispatched task.

        Only a pending handle transitions. Repeated or unknown completions
        return None.
        """
        pass

    @abstractmethod
    async def get(self, task_id: str) -> DispatchHandle | None:
        pass

    @abstractmethod
    async def find_pending(
        self, execution_id: str, step_id: str
    ) -> DispatchHandle | None:
        """Return the pending handle for a workflow step, if any."""
        pass


class MessageBusAgentExecutor(AgentExecutor):
    """Dispatches tasks as messages on the bus and persists the handles."""

    def __init__(self, db: Database, message_bus: MessageBus):
        self._db = db
        self._message_bus = message_bus

    @property
    def workspace_id(self) -> str:
        return self._message_bus.workspace_id

    async def dispatch(self, request: DispatchRequest) -> DispatchHandle:
        content = request.content
        data = dict(content.data or {})
        data.setdefault("taskId", request.task_id)
        if request.timeout is not None:
            data["timeout"] = request.timeout
        if request.retry_config is not None:
            data["retryConfig"] = request.retry_config.model_dump(by_alias=True)
        content = content.model_copy(
            update={
                "data": data,
                "task_id": request.task_id,
                "workflow_execution_id": (
                    content.workflow_execution_id or request.execution_id
                ),
            }
        )

        try:
            message_id = await self._message_bus.send(
                SendMessageInput(
                    from_agent_id=request.from_agent_id,
                    to_agent_id=request.agent_id,
                    team_id=request.team_id,
                    message_type=request.message_type,
                    content=content,
                )
            )
            handle = await self._db.dispatches.insert(
                DispatchHandle(
                    id=request.task_id,
                    workspace_id=self.workspace_id,
                    agent_id=request.agent_id,
                    message_id=message_id,
                    team_id=request.team_id,
                    execution_id=request.execution_id,
                    step_id=request.step_id,
                    timeout=request.timeout,
                    retry_config=request.retry_config,
                )
            )
        except Exception as e:
            raise DispatchError(request.agent_id, cause=e) from e

        logger.info(
            "Task dispatched",
            task_id=handle.id,
            agent_id=handle.agent_id,
            message_id=message_id,
            execution_id=handle.execution_id,
            step_id=handle.step_id,
        )
        return handle

    async def complete(
        self,
        task_id: str,
        success: bool,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> DispatchHandle | None:
        transitioned = False

        def finish(handle: DispatchHandle) -> dict[str, Any] | None:
            nonlocal transitioned
            if not handle.is_pending:
                return None
            transitioned = True
            return {
                "status": DispatchStatus.COMPLETED if success else DispatchStatus.FAILED,
                "output": output,
                "error": error,
                "completed_at": datetime.now(UTC),
            }

        handle = await self._db.dispatches.modify(task_id, finish)
        if handle is None:
            logger.warning("Completion for unknown task", task_id=task_id)
            return None
        if not transitioned:
            logger.info(
                "Duplicate completion ignored",
                task_id=task_id,
                status=handle.status.value,
            )
            return None

        await self._message_bus.acknowledge(handle.message_id)
        logger.info(
            "Task completed",
            task_id=task_id,
            agent_id=handle.agent_id,
            success=success,
        )
        return handle

    async def get(self, task_id: str) -> DispatchHandle | None:
        return await self._db.dispatches.get(task_id)

    async def find_pending(
        self, execution_id: str, step_id: str
    ) -> DispatchHandle | None:
        return await self._db.dispatches.find_one(
            lambda h: h.execution_id == execution_id
            and h.step_id == step_id
            and h.is_pending
        )
