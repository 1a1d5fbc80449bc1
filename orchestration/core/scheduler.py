"""Step Scheduler - Task queue that runs workflow steps.

Each "run this step" unit is queued and picked up by a worker, so long step
chains never recurse and one execution cannot starve the others.
"""

import asyncio
from collections.abc import Awaitable, Callable

from orchestration.utils.logging import get_logger

logger = get_logger(__name__)

StepRunner = Callable[[str, str], Awaitable[None]]
StepErrorHandler = Callable[[str, str, Exception], Awaitable[None]]


class SchedulerError(Exception):
    """Raised when the scheduler is used before it is configured."""

    pass


class StepScheduler:
    """asyncio.Queue of (execution_id, step_id) consumed by N workers.

    Workers start lazily on the first submit. A runner exception is logged
    and passed to ``on_error``; the worker keeps going.
    """

    def __init__(
        self,
        runner: StepRunner | None = None,
        workers: int = 4,
        on_error: StepErrorHandler | None = None,
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._runner = runner
        self._on_error = on_error
        self._worker_count = workers
        self._queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    def bind(
        self, runner: StepRunner, on_error: StepErrorHandler | None = None
    ) -> None:
        """Attach the step runner (and error handler) after construction."""
        self._runner = runner
        if on_error is not None:
            self._on_error = on_error

    @property
    def is_running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    @property
    def workers(self) -> int:
        return self._worker_count

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._runner is None:
            raise SchedulerError("No step runner bound to the scheduler")
        if self.is_running:
            return
        self._workers = [
            asyncio.create_task(self._work(index), name=f"step-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Step scheduler started", workers=self._worker_count)

    async def stop(self) -> None:
        """Cancel the workers. Queued units stay in the queue."""
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
            logger.info("Step scheduler stopped", pending=self.pending)

    async def submit(self, execution_id: str, step_id: str) -> None:
        """Queue one step for execution."""
        if not self.is_running:
            await self.start()
        await self._queue.put((execution_id, step_id))
        logger.debug(
            "Step scheduled",
            execution_id=execution_id,
            step_id=step_id,
            pending=self.pending,
        )

    async def join(self) -> None:
        """Wait until every queued unit, including ones queued meanwhile, ran."""
        await self._queue.join()

    async def _work(self, index: int) -> None:
        while True:
            execution_id, step_id = await self._queue.get()
            try:
                if self._runner is None:
                    raise SchedulerError("No step runner bound to the scheduler")
                await self._runner(execution_id, step_id)
            except Exception as e:
                logger.error(
                    "Scheduled step failed",
                    worker=index,
                    execution_id=execution_id,
                    step_id=step_id,
                    error=str(e),
                    exc_info=True,
                )
                await self._report(execution_id, step_id, e)
            finally:
                self._queue.task_done()

    async def _report(self, execution_id: str, step_id: str, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            await self._on_error(execution_id, step_id, error)
        except Exception:
            logger.error(
                "Step error handler failed",
                execution_id=execution_id,
                step_id=step_id,
                exc_info=True,
            )
