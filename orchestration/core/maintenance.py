"""Recurring housekeeping sweeps.

Meant to be called by an external scheduler (cron, a job runner); nothing
here schedules itself.
"""

from typing import Any

from orchestration.utils.logging import get_logger

from .autonomy import AutonomyService
from .memory import MemoryService
from .workflow_engine import WorkflowEngine

logger = get_logger(__name__)


async def cleanup_stale_executions(
    engine: WorkflowEngine, max_age_hours: int = 24
) -> int:
    """Fail executions stuck in ``running`` for longer than ``max_age_hours``."""
    return await engine.fail_stale_executions(max_age_hours)


async def run_maintenance(
    memory: MemoryService,
    autonomy: AutonomyService,
    engine: WorkflowEngine,
    max_execution_age_hours: int = 24,
) -> dict[str, Any]:
    """Run every sweep once and report what each one did.

    A failing sweep is logged and reported as an error entry; the others
    still run.
    """
    sweeps = {
        "memoriesCleaned": memory.cleanup,
        "memoriesPromoted": memory.check_promotions,
        "actionsExpired": autonomy.expire_pending_actions,
        "staleExecutions": lambda: cleanup_stale_executions(
            engine, max_execution_age_hours
        ),
    }

    summary: dict[str, Any] = {}
    errors: dict[str, str] = {}
    for name, sweep in sweeps.items():
        try:
            summary[name] = await sweep()
        except Exception as e:
            logger.error("Maintenance sweep failed", sweep=name, exc_info=True)
            summary[name] = 0
            errors[name] = str(e)

    if errors:
        summary["errors"] = errors
    logger.info("Maintenance completed", **summary)
    return summary
