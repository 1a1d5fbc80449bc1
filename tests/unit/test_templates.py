"""Template catalog and template service unit tests."""

import pytest
import yaml
from pydantic import ValidationError

from orchestration.core import (
    TemplateCatalog,
    TemplateLoadError,
    UnmappedAgentTypeError,
    convert_template_to_steps,
    validate_agent_availability,
)
from orchestration.models import (
    AutonomyLevel,
    ConditionOperator,
    Department,
    ExecutionStatus,
    StepStatus,
    TeamRole,
    TriggerType,
    WorkflowStatus,
    WorkflowStep,
    WorkflowTemplate,
)
from orchestration.utils.exceptions import NotFoundError

LEAD_AGENTS = {
    "lead_qualifier": "agent_q",
    "sales_manager": "agent_m",
    "proposal_writer": "agent_p",
    "follow_up_agent": "agent_f",
}

WORKFLOW_YAML = """\
id: {id}
name: Mini
category: sales
department: sales
steps:
  - id: one
    name: One
    action: do_one
    agent_type: worker
    on_success: {target}
  - id: two
    name: Two
    action: do_two
    agent_type: worker
required_agent_types: [worker]
"""


def _write_workflow(root, filename, template_id="mini", target="two"):
    workflows = root / "workflows"
    workflows.mkdir(exist_ok=True)
    path = workflows / filename
    path.write_text(WORKFLOW_YAML.format(id=template_id, target=target), encoding="utf-8")
    return path


class TestCatalogLoad:
    """Test loading templates from YAML."""

    def test_bundled_catalog(self, catalog):
        assert sorted(t.id for t in catalog.workflow_templates) == [
            "content-campaign",
            "lead-to-customer",
            "support-ticket-resolution",
        ]
        assert sorted(t.id for t in catalog.team_templates) == [
            "marketing-team",
            "operations-team",
            "sales-team",
            "support-team",
        ]

    def test_workflow_template_fields(self, catalog):
        template = catalog.get_workflow_template("lead-to-customer")

        assert template.department == Department.SALES
        assert template.trigger.type == TriggerType.EVENT
        assert template.trigger.config["eventType"] == "lead.created"
        assert len(template.steps) == 8
        check = template.steps[1]
        assert check.agent_role == TeamRole.COORDINATOR
        assert check.conditions[0].operator == ConditionOperator.GREATER_THAN
        assert check.conditions[0].value == 15
        assert template.agent_types == [
            "lead_qualifier",
            "sales_manager",
            "proposal_writer",
            "follow_up_agent",
        ]

    def test_team_template_fields(self, catalog):
        template = catalog.get_team_template("support-team")

        assert template.config.autonomy_level == AutonomyLevel.SUPERVISED
        assert template.config.max_concurrent_tasks == 20
        assert template.coordinator.type == "support_manager"
        assert [a.role for a in template.agents][-1] == TeamRole.SUPPORT
        assert template.workflows[1].trigger.config == {"cron": "0 14 * * *"}

    def test_load_directory(self, tmp_path):
        _write_workflow(tmp_path, "mini.yaml")
        _write_workflow(tmp_path, "other.yml", template_id="other")

        catalog = TemplateCatalog.load(tmp_path)

        assert [t.id for t in catalog.workflow_templates] == ["mini", "other"]
        assert catalog.team_templates == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(TemplateLoadError, match="Template directory not found"):
            TemplateCatalog.load(tmp_path / "absent")

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "workflows").mkdir()
        (tmp_path / "workflows" / "bad.yaml").write_text("id: [unclosed", encoding="utf-8")

        with pytest.raises(TemplateLoadError, match="Invalid YAML") as exc_info:
            TemplateCatalog.load(tmp_path)

        assert exc_info.value.path.endswith("bad.yaml")

    def test_empty_file(self, tmp_path):
        (tmp_path / "teams").mkdir()
        (tmp_path / "teams" / "empty.yaml").write_text("", encoding="utf-8")

        with pytest.raises(TemplateLoadError, match="Empty template file"):
            TemplateCatalog.load(tmp_path)

    def test_routing_to_unknown_step(self, tmp_path):
        _write_workflow(tmp_path, "mini.yaml", target="missing")

        with pytest.raises(TemplateLoadError, match="routes to unknown step: missing"):
            TemplateCatalog.load(tmp_path)

    def test_required_agent_types_cover_steps(self):
        data = yaml.safe_load(WORKFLOW_YAML.format(id="mini", target="two"))
        data["required_agent_types"] = []

        with pytest.raises(ValidationError, match="missing from required_agent_types"):
            WorkflowTemplate.model_validate(data)

    def test_duplicate_ids(self, tmp_path):
        _write_workflow(tmp_path, "a.yaml")
        _write_workflow(tmp_path, "b.yaml")

        with pytest.raises(TemplateLoadError, match="Duplicate workflow template id: mini"):
            TemplateCatalog.load(tmp_path)


class TestCatalogLookup:
    """Test template lookups and keyword suggestions."""

    def test_unknown_ids(self, catalog):
        assert catalog.get_workflow_template("missing") is None
        assert catalog.get_team_template("missing") is None

    def test_by_department_and_category(self, catalog):
        marketing = catalog.workflow_templates_by_department("marketing")
        support = catalog.workflow_templates_by_category("support")

        assert [t.id for t in marketing] == ["content-campaign"]
        assert [t.id for t in support] == ["support-ticket-resolution"]
        assert catalog.workflow_templates_by_department(Department.FINANCE) == []
        assert [t.id for t in catalog.team_templates_by_department("operations")] == [
            "operations-team"
        ]

    def test_suggest_workflow_by_department(self, catalog):
        assert catalog.suggest_workflow_template(["Support"]).id == "support-ticket-resolution"

    def test_suggest_workflow_by_step_action(self, catalog):
        """Test a keyword found only in benefits and step actions still wins."""
        assert catalog.suggest_workflow_template(["proposal"]).id == "lead-to-customer"

    def test_suggest_workflow_no_match(self, catalog):
        assert catalog.suggest_workflow_template(["quantum"]) is None
        assert catalog.suggest_workflow_template([]) is None

    def test_suggest_team_by_agents(self, catalog):
        assert catalog.suggest_team_template(["ticket"]).id == "support-team"

    def test_suggest_team_no_match(self, catalog):
        assert catalog.suggest_team_template(["quantum"]) is None


class TestConvertTemplate:
    """Test binding template steps to agents."""

    def test_convert_to_workflow_steps(self, catalog):
        template = catalog.get_workflow_template("lead-to-customer")

        steps = convert_template_to_steps(template, LEAD_AGENTS)

        assert all(isinstance(s, WorkflowStep) for s in steps)
        assert [s.id for s in steps] == [s.id for s in template.steps]
        first = steps[0]
        assert first.agent_id == "agent_q"
        assert first.action == "qualify_lead"
        assert first.timeout == 600
        assert first.retry_config.max_attempts == 2
        assert first.retry_config.backoff_ms == 5000
        assert first.on_success == "check-qualification"
        assert steps[1].agent_id == "agent_m"
        assert steps[1].conditions[0].field == "Qualify_Lead_result.score"

        definition = first.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert definition["agentId"] == "agent_q"
        assert definition["onFailure"] == "add-to-nurture"
        assert definition["retryConfig"] == {"maxAttempts": 2, "backoffMs": 5000}

    def test_converted_steps_are_independent(self, catalog):
        template = catalog.get_workflow_template("lead-to-customer")

        steps = convert_template_to_steps(template, LEAD_AGENTS)
        steps[0].inputs["criteria"].append("extra")

        assert "extra" not in template.steps[0].inputs["criteria"]

    def test_unmapped_agent_type(self, catalog):
        template = catalog.get_workflow_template("lead-to-customer")
        mapping = {k: v for k, v in LEAD_AGENTS.items() if k != "proposal_writer"}

        with pytest.raises(UnmappedAgentTypeError) as exc_info:
            convert_template_to_steps(template, mapping)

        assert str(exc_info.value) == "No agent found for type: proposal_writer"
        assert exc_info.value.agent_type == "proposal_writer"

    def test_empty_agent_id_is_unmapped(self, catalog):
        template = catalog.get_workflow_template("content-campaign")

        with pytest.raises(UnmappedAgentTypeError, match="campaign_manager"):
            convert_template_to_steps(template, {"campaign_manager": ""})

    def test_validate_agent_availability(self, catalog):
        template = catalog.get_workflow_template("support-ticket-resolution")

        partial = validate_agent_availability(template, ["ticket_triage", "support_manager"])
        full = validate_agent_availability(template, template.required_agent_types)

        assert partial.valid is False
        assert partial.missing_types == ["response_generator", "escalation_handler"]
        assert full.valid is True
        assert full.missing_types == []


class TestTemplateService:
    """Test creating teams and workflows from templates."""

    @pytest.mark.asyncio
    async def test_team_with_provisioned_agents(self, templates, db):
        team = await templates.create_team_from_template(
            "sales-team", provision_agents=True, created_by="user_1"
        )

        assert team.name == "Sales Team"
        assert team.department == Department.SALES
        assert team.autonomy_level == AutonomyLevel.SEMI_AUTONOMOUS
        assert team.approval_required == ["send_proposal", "close_deal", "discount_offer"]
        assert team.max_concurrent_tasks == 10
        assert team.created_by == "user_1"

        members = await db.team_members.find_many(
            where=lambda m: m.team_id == team.id, order_by=lambda m: m.priority
        )
        agents = [await db.agents.get(m.agent_id) for m in members]
        assert [a.type for a in agents] == [
            "sales_manager",
            "lead_qualifier",
            "proposal_writer",
            "follow_up_agent",
        ]
        assert members[0].role == TeamRole.COORDINATOR
        assert agents[1].tools[0] == "search_leads"

    @pytest.mark.asyncio
    async def test_team_with_existing_members(self, templates, seed_agent, db):
        """Test listed agents join in order and unknown ids are skipped."""
        lead = await seed_agent("Lead", "sales_manager")
        writer = await seed_agent("Writer", "proposal_writer")

        team = await templates.create_team_from_template(
            "marketing-team",
            name="Growth",
            member_agent_ids=[lead.id, "missing", writer.id],
        )

        assert team.name == "Growth"
        assert team.max_concurrent_tasks == 8
        members = await db.team_members.find_many(
            where=lambda m: m.team_id == team.id, order_by=lambda m: m.priority
        )
        assert [(m.agent_id, m.role, m.priority) for m in members] == [
            (lead.id, TeamRole.COORDINATOR, 0),
            (writer.id, TeamRole.SPECIALIST, 2),
        ]
        assert await db.agents.count() == 2

    @pytest.mark.asyncio
    async def test_unknown_team_template(self, templates):
        with pytest.raises(NotFoundError, match="TeamTemplate not found: missing"):
            await templates.create_team_from_template("missing")

    @pytest.mark.asyncio
    async def test_workflow_from_team_members(self, templates):
        team = await templates.create_team_from_template("sales-team", provision_agents=True)
        mapping = await templates.agent_mapping_for_team(team.id)

        workflow = await templates.create_workflow_from_template(
            "lead-to-customer", team_id=team.id
        )

        assert workflow.status == WorkflowStatus.DRAFT
        assert workflow.team_id == team.id
        assert workflow.name == "Lead-to-Customer Pipeline"
        assert workflow.trigger.type == TriggerType.EVENT
        assert len(workflow.steps) == 8
        assert workflow.steps[0].agent_id == mapping["lead_qualifier"]
        assert workflow.get_step("notify-manager").agent_id == mapping["sales_manager"]

    @pytest.mark.asyncio
    async def test_workflow_with_explicit_mapping(self, templates, db):
        workflow = await templates.create_workflow_from_template(
            "lead-to-customer", agent_mapping=LEAD_AGENTS, name="Inbound"
        )

        stored = await db.workflows.get(workflow.id)
        assert stored.name == "Inbound"
        assert stored.team_id is None
        assert {s.agent_id for s in stored.steps} == set(LEAD_AGENTS.values())

    @pytest.mark.asyncio
    async def test_workflow_team_missing_agent_type(self, templates, db):
        """Test a team without the needed agent types cannot back the workflow."""
        team = await templates.create_team_from_template("support-team", provision_agents=True)

        with pytest.raises(UnmappedAgentTypeError, match="No agent found for type: lead_qualifier"):
            await templates.create_workflow_from_template("lead-to-customer", team_id=team.id)

        assert await db.workflows.count() == 0

    @pytest.mark.asyncio
    async def test_workflow_unknown_team(self, templates):
        with pytest.raises(NotFoundError, match="Team not found: missing"):
            await templates.create_workflow_from_template(
                "lead-to-customer", agent_mapping=LEAD_AGENTS, team_id="missing"
            )

    @pytest.mark.asyncio
    async def test_unknown_workflow_template(self, templates):
        with pytest.raises(NotFoundError, match="WorkflowTemplate not found: missing"):
            await templates.create_workflow_from_template("missing", agent_mapping={})

    @pytest.mark.asyncio
    async def test_template_workflow_runs(self, templates, engine, db):
        """Test a workflow built from a template dispatches its first step."""
        team = await templates.create_team_from_template("support-team", provision_agents=True)
        workflow = await templates.create_workflow_from_template(
            "support-ticket-resolution", team_id=team.id
        )
        await db.workflows.update(workflow.id, status=WorkflowStatus.ACTIVE)

        result = await engine.execute(workflow.id, trigger_type=TriggerType.EVENT)

        assert result.success is True
        assert result.status == ExecutionStatus.RUNNING
        execution = await engine.get_execution_status(result.execution_id)
        assert execution.current_step_id == "triage-ticket"
        assert execution.step_results["triage-ticket"].status == StepStatus.RUNNING
