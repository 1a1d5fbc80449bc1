#!/usr/bin/env python
"""Lead Pipeline Example - basic usage.

Seeds a small sales team, routes a task, runs the team against an
objective, drives a two-step workflow through its completion callbacks and
sends a risky action through the approval gate.

Usage:
    python examples/lead_pipeline.py
"""

import asyncio

from orchestration.api import Services
from orchestration.main import build_services
from orchestration.models import (
    Agent,
    ApprovalDecision,
    OrchestratorTask,
    QueueActionInput,
    Team,
    TeamMember,
    TeamRole,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
)
from orchestration.utils.config import AppConfig, AppSettings, WorkflowConfig

WORKSPACE_ID = "ws_example"


async def seed(services: Services) -> tuple[Team, list[Agent], Workflow]:
    """Insert agents, a team and a workflow."""
    db = services.db
    lead = await db.agents.insert(
        Agent(workspace_id=WORKSPACE_ID, name="Lead", type="coordinator")
    )
    scorer = await db.agents.insert(
        Agent(
            workspace_id=WORKSPACE_ID,
            name="Scorer",
            type="sales",
            capabilities=["scoring"],
            tools=["crm"],
        )
    )
    writer = await db.agents.insert(
        Agent(workspace_id=WORKSPACE_ID, name="Writer", type="content", capabilities=["email"])
    )

    team = await db.teams.insert(
        Team(workspace_id=WORKSPACE_ID, name="Sales", created_by="owner_1")
    )
    for agent, role, priority in (
        (lead, TeamRole.COORDINATOR, 0),
        (scorer, TeamRole.SPECIALIST, 1),
        (writer, TeamRole.SPECIALIST, 2),
    ):
        await db.team_members.insert(
            TeamMember(team_id=team.id, agent_id=agent.id, role=role, priority=priority)
        )

    workflow = await db.workflows.insert(
        Workflow(
            workspace_id=WORKSPACE_ID,
            name="Lead intake",
            status=WorkflowStatus.ACTIVE,
            steps=[
                WorkflowStep(id="score", name="Score lead", agent_id=scorer.id, action="score"),
                WorkflowStep(id="email", name="Draft email", agent_id=writer.id, action="draft"),
            ],
        )
    )
    return team, [lead, scorer, writer], workflow


async def run_routing_and_team(services: Services, team: Team) -> None:
    print("-" * 60)
    print("Routing")
    print("-" * 60)
    assignment = await services.orchestrator.route_task(
        OrchestratorTask(task_type="sales", required_capabilities=["scoring"])
    )
    print(f"Assigned to: {assignment.agent_name} ({assignment.confidence:.0f})")
    print(f"Reason:      {assignment.reason}")

    print()
    result = await services.team_executor.run(team.id, "Qualify this week's inbound leads")
    print(f"Team run success: {result.success}")
    print(result.results.get("summary", result.error))


async def run_workflow(services: Services, workflow: Workflow) -> None:
    print("-" * 60)
    print("Workflow")
    print("-" * 60)
    engine = services.workflow_engine
    started = await engine.execute(workflow.id, initial_context={"lead": {"name": "Acme"}})
    print(f"Execution {started.execution_id}: {started.status.value}")

    # Agents report back through the completion callback
    await engine.complete_step(started.execution_id, "score", True, {"score": 87})
    await engine.wait_idle()
    await engine.complete_step(started.execution_id, "email", True, {"draft": "Hi Acme"})

    execution = await engine.get_execution_status(started.execution_id)
    print(f"Final status: {execution.status.value}")
    print(f"Completed steps: {execution.completed_steps}/{execution.total_steps}")


async def run_approval(services: Services, team: Team) -> None:
    print("-" * 60)
    print("Approval gate")
    print("-" * 60)
    autonomy = services.autonomy
    decision = await autonomy.can_auto_execute(team.id, "send_email")
    print(f"Auto-execute send_email: {decision.can_execute}")
    for reason in decision.classification.reasons:
        print(f"  - {reason}")

    action_id = await autonomy.queue_for_approval(
        QueueActionInput(
            action_type="send_email",
            team_id=team.id,
            description="Send the follow-up to Acme",
        )
    )
    reviewed = await autonomy.review(
        ApprovalDecision(action_id=action_id, approved=True, reviewer_id="owner_1")
    )
    print(f"Action {action_id}: {reviewed.status.value}")
    print(f"Notifications published: {len(services.notification_sink.events)}")


async def main() -> None:
    services = build_services(
        AppConfig(
            app=AppSettings(workspace_id=WORKSPACE_ID),
            workflow=WorkflowConfig(scheduler_workers=2),
        )
    )
    await services.workflow_engine.start()
    try:
        team, _, workflow = await seed(services)
        await run_routing_and_team(services, team)
        print()
        await run_workflow(services, workflow)
        print()
        await run_approval(services, team)
    finally:
        await services.workflow_engine.stop()


if __name__ == "__main__":
    asyncio.run(main())
