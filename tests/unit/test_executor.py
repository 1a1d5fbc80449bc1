"""Agent executor and step scheduler unit tests."""

import asyncio

import pytest

from orchestration.core import SchedulerError, StepScheduler
from orchestration.models import (
    DispatchRequest,
    DispatchStatus,
    MessageStatus,
    MessageType,
    RetryConfig,
)


class TestMessageBusAgentExecutor:
    """Test MessageBusAgentExecutor class."""

    @pytest.mark.asyncio
    async def test_dispatch_sends_task_message(self, executor, message_bus):
        """Test dispatch delivers a task message and records a pending handle."""
        request = DispatchRequest.task(
            "agent_1",
            "Qualify lead",
            body="Check the lead",
            data={"leadId": "L1"},
            timeout=5000,
            retry_config=RetryConfig(max_attempts=2, backoff_ms=10),
        )

        handle = await executor.dispatch(request)

        assert handle.id == request.task_id
        assert handle.id.startswith("task_")
        assert handle.status == DispatchStatus.PENDING
        message = await message_bus.get_message(handle.message_id)
        assert message.message_type == MessageType.TASK
        assert message.to_agent_id == "agent_1"
        assert message.content.task_id == handle.id
        assert message.content.data == {
            "leadId": "L1",
            "taskId": handle.id,
            "timeout": 5000,
            "retryConfig": {"maxAttempts": 2, "backoffMs": 10},
        }

    @pytest.mark.asyncio
    async def test_complete_transitions_once(self, executor, message_bus):
        """Test only the first completion of a handle is applied."""
        handle = await executor.dispatch(DispatchRequest.task("agent_1", "Work"))

        first = await executor.complete(handle.id, True, output={"ok": True})
        second = await executor.complete(handle.id, False, error="late")

        assert first.status == DispatchStatus.COMPLETED
        assert first.output == {"ok": True}
        assert second is None
        stored = await executor.get(handle.id)
        assert stored.status == DispatchStatus.COMPLETED
        message = await message_bus.get_message(handle.message_id)
        assert message.status == MessageStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_complete_failure(self, executor):
        """Test a failed completion records the error."""
        handle = await executor.dispatch(DispatchRequest.task("agent_1", "Work"))

        completed = await executor.complete(handle.id, False, error="boom")

        assert completed.status == DispatchStatus.FAILED
        assert completed.error == "boom"

    @pytest.mark.asyncio
    async def test_complete_unknown_task(self, executor):
        """Test completing an unknown task returns None."""
        assert await executor.complete("task_missing", True) is None

    @pytest.mark.asyncio
    async def test_find_pending(self, executor):
        """Test looking up the pending handle of a workflow step."""
        handle = await executor.dispatch(
            DispatchRequest.task("agent_1", "Step", execution_id="exec_1", step_id="s1")
        )

        assert (await executor.find_pending("exec_1", "s1")).id == handle.id
        assert await executor.find_pending("exec_1", "s2") is None

        await executor.complete(handle.id, True)

        assert await executor.find_pending("exec_1", "s1") is None


class TestStepScheduler:
    """Test StepScheduler class."""

    @pytest.mark.asyncio
    async def test_runs_submitted_steps(self):
        """Test submitted units are run by the workers."""
        ran = []

        async def runner(execution_id, step_id):
            ran.append((execution_id, step_id))

        scheduler = StepScheduler(runner, workers=2)
        await scheduler.submit("e1", "s1")
        await scheduler.submit("e1", "s2")
        await scheduler.join()
        await scheduler.stop()

        assert sorted(ran) == [("e1", "s1"), ("e1", "s2")]

    @pytest.mark.asyncio
    async def test_submit_starts_lazily(self):
        """Test the workers start on the first submit."""

        async def runner(execution_id, step_id):
            pass

        scheduler = StepScheduler(runner, workers=1)
        assert not scheduler.is_running

        await scheduler.submit("e1", "s1")

        assert scheduler.is_running
        await scheduler.join()
        await scheduler.stop()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_units_queued_while_running_are_joined(self):
        """Test join waits for units submitted by the runner itself."""
        ran = []
        scheduler = StepScheduler(workers=1)

        async def runner(execution_id, step_id):
            ran.append(step_id)
            if step_id == "s1":
                await scheduler.submit(execution_id, "s2")

        scheduler.bind(runner)
        await scheduler.submit("e1", "s1")
        await scheduler.join()
        await scheduler.stop()

        assert ran == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_runner_error_is_reported(self):
        """Test a failing unit is passed to on_error and workers keep going."""
        errors = []
        ran = []

        async def runner(execution_id, step_id):
            if step_id == "bad":
                raise RuntimeError("boom")
            ran.append(step_id)

        async def on_error(execution_id, step_id, error):
            errors.append((step_id, str(error)))

        scheduler = StepScheduler(runner, workers=1, on_error=on_error)
        await scheduler.submit("e1", "bad")
        await scheduler.submit("e1", "good")
        await scheduler.join()
        await scheduler.stop()

        assert errors == [("bad", "boom")]
        assert ran == ["good"]

    @pytest.mark.asyncio
    async def test_start_without_runner(self):
        """Test starting without a runner raises SchedulerError."""
        scheduler = StepScheduler()

        with pytest.raises(SchedulerError):
            await scheduler.start()

    @pytest.mark.asyncio
    async def test_unbound_runner_is_reported(self):
        """Test a unit picked up after the runner is detached reports SchedulerError."""
        errors = []

        async def runner(execution_id, step_id):
            scheduler._runner = None

        async def on_error(execution_id, step_id, error):
            errors.append((step_id, error))

        scheduler = StepScheduler(runner, workers=1, on_error=on_error)
        await scheduler.submit("e1", "s1")
        await scheduler.submit("e1", "s2")
        await scheduler.join()
        await scheduler.stop()

        assert [step_id for step_id, _ in errors] == ["s2"]
        assert isinstance(errors[0][1], SchedulerError)

    def test_invalid_worker_count(self):
        """Test at least one worker is required."""
        with pytest.raises(ValueError):
            StepScheduler(workers=0)

    @pytest.mark.asyncio
    async def test_stop_keeps_queued_units(self):
        """Test units still queued at stop are not dropped."""
        gate = asyncio.Event()

        async def runner(execution_id, step_id):
            await gate.wait()

        scheduler = StepScheduler(runner, workers=1)
        await scheduler.submit("e1", "s1")
        await scheduler.submit("e1", "s2")
        await asyncio.sleep(0)
        await scheduler.stop()

        assert scheduler.pending >= 1
