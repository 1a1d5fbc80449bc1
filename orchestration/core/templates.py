"""Template Catalog - Pre-built team and workflow templates.

Templates are YAML files under ``catalog/teams`` and ``catalog/workflows``
(package data), validated into pydantic models at load time. The catalog is
read-only; ``TemplateService`` turns entries into real teams and workflows in
the workspace database.
"""

from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from orchestration.models import (
    Agent,
    AgentAvailability,
    Department,
    Team,
    TeamMember,
    TeamRole,
    TeamTemplate,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
    WorkflowTemplate,
)
from orchestration.persistence import Database
from orchestration.utils.exceptions import NotFoundError, OrchestrationError
from orchestration.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CATALOG_DIR = Path(__file__).resolve().parent.parent / "catalog"

TemplateT = TypeVar("TemplateT", bound=BaseModel)

# Keyword match weights used by the suggest_* lookups
DEPARTMENT_WEIGHT = 10
CATEGORY_WEIGHT = 10
NAME_WEIGHT = 8
USE_CASE_WEIGHT = 5
BENEFIT_WEIGHT = 3
STEP_ACTION_WEIGHT = 2
AGENT_WEIGHT = 2


class TemplateError(OrchestrationError):
    """Base class for template errors."""

    pass


class TemplateLoadError(TemplateError):
    """Raised when a template file cannot be read or validated."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(
            message + (f" (path: {path})" if path else ""),
            details={"path": path} if path else None,
        )


class UnmappedAgentTypeError(TemplateError):
    """Raised when a template step needs an agent type with no agent bound."""

    def __init__(self, agent_type: str):
        self.agent_type = agent_type
        super().__init__(
            f"No agent found for type: {agent_type}",
            details={"agent_type": agent_type},
        )


def _load_file(path: Path, model: type[TemplateT]) -> TemplateT:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise TemplateLoadError(f"Invalid YAML: {e}", str(path)) from e
    except OSError as e:
        raise TemplateLoadError(f"Cannot read file: {e}", str(path)) from e

    if not data:
        raise TemplateLoadError("Empty template file", str(path))
    if not isinstance(data, dict):
        raise TemplateLoadError("Template must be a mapping", str(path))

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TemplateLoadError(f"Invalid template: {e}", str(path)) from e


def _load_directory(dir_path: Path, model: type[TemplateT]) -> list[TemplateT]:
    if not dir_path.is_dir():
        return []
    files = sorted([*dir_path.glob("*.yaml"), *dir_path.glob("*.yml")])
    return [_load_file(path, model) for path in files]


def _matches(keywords: list[str], text: str) -> bool:
    text = text.lower()
    return any(k in text for k in keywords)


def convert_template_to_steps(
    template: WorkflowTemplate, agent_mapping: dict[str, str]
) -> list[WorkflowStep]:
    """Bind each template step to the agent mapped to its agent type.

    Args:
        template: The workflow template.
        agent_mapping: Agent type -> agent id.

    Returns:
        Workflow steps in template order, keeping the template's step ids so
        ``on_success``/``on_failure`` routing stays valid.

    Raises:
        UnmappedAgentTypeError: If a step's agent type has no mapped agent.
    """
    steps: list[WorkflowStep] = []
    for step_template in template.steps:
        agent_id = agent_mapping.get(step_template.agent_type)
        if not agent_id:
            raise UnmappedAgentTypeError(step_template.agent_type)
        steps.append(step_template.to_step(agent_id))
    return steps


def validate_agent_availability(
    template: WorkflowTemplate, available_agent_types: list[str]
) -> AgentAvailability:
    """Check that every agent type the template requires is available."""
    missing = [t for t in template.required_agent_types if t not in available_agent_types]
    return AgentAvailability(valid=not missing, missing_types=missing)


class TemplateCatalog:
    """Read-only lookup over the team and workflow templates."""

    def __init__(
        self,
        workflow_templates: list[WorkflowTemplate] | None = None,
        team_templates: list[TeamTemplate] | None = None,
    ):
        self._workflows = self._index(workflow_templates or [], "workflow")
        self._teams = self._index(team_templates or [], "team")

    @staticmethod
    def _index(templates: list[Any], kind: str) -> dict[str, Any]:
        indexed: dict[str, Any] = {}
        for template in templates:
            if template.id in indexed:
                raise TemplateLoadError(f"Duplicate {kind} template id: {template.id}")
            indexed[template.id] = template
        return indexed

    @classmethod
    def load(cls, directory: str | Path | None = None) -> "TemplateCatalog":
        """Load every template under ``directory``.

        Args:
            directory: Catalog root holding ``workflows/`` and ``teams/``.
                Defaults to the catalog shipped with the package.

        Raises:
            TemplateLoadError: If the directory is missing or a file is invalid.
        """
        root = Path(directory) if directory is not None else DEFAULT_CATALOG_DIR
        if not root.is_dir():
            raise TemplateLoadError("Template directory not found", str(root))

        catalog = cls(
            _load_directory(root / "workflows", WorkflowTemplate),
            _load_directory(root / "teams", TeamTemplate),
        )
        logger.info(
            "Templates loaded",
            directory=str(root),
            workflow_templates=len(catalog._workflows),
            team_templates=len(catalog._teams),
        )
        return catalog

    # -------------------------------------------------------------------------
    # Workflow templates
    # -------------------------------------------------------------------------

    @property
    def workflow_templates(self) -> list[WorkflowTemplate]:
        return list(self._workflows.values())

    def get_workflow_template(self, template_id: str) -> WorkflowTemplate | None:
        return self._workflows.get(template_id)

    def workflow_templates_by_department(
        self, department: Department | str
    ) -> list[WorkflowTemplate]:
        department = Department(department)
        return [t for t in self._workflows.values() if t.department == department]

    def workflow_templates_by_category(self, category: str) -> list[WorkflowTemplate]:
        return [t for t in self._workflows.values() if t.category == category]

    def suggest_workflow_template(self, keywords: list[str]) -> WorkflowTemplate | None:
        """Best keyword match, or None when nothing matches at all.

        Keywords match as case-insensitive substrings. Department and category
        weigh most, then the name, use cases, benefits and step actions.
        """
        keywords = [k.lower() for k in keywords if k]
        best: WorkflowTemplate | None = None
        best_score = 0

        for template in self._workflows.values():
            score = 0
            if _matches(keywords, template.department.value):
                score += DEPARTMENT_WEIGHT
            if _matches(keywords, template.category):
                score += CATEGORY_WEIGHT
            if _matches(keywords, template.name):
                score += NAME_WEIGHT
            score += USE_CASE_WEIGHT * sum(_matches(keywords, u) for u in template.use_cases)
            score += BENEFIT_WEIGHT * sum(_matches(keywords, b) for b in template.benefits)
            score += STEP_ACTION_WEIGHT * sum(
                _matches(keywords, s.action) for s in template.steps
            )

            if score > best_score:
                best, best_score = template, score

        return best

    # -------------------------------------------------------------------------
    # Team templates
    # -------------------------------------------------------------------------

    @property
    def team_templates(self) -> list[TeamTemplate]:
        return list(self._teams.values())

    def get_team_template(self, template_id: str) -> TeamTemplate | None:
        return self._teams.get(template_id)

    def team_templates_by_department(
        self, department: Department | str
    ) -> list[TeamTemplate]:
        department = Department(department)
        return [t for t in self._teams.values() if t.department == department]

    def suggest_team_template(self, keywords: list[str]) -> TeamTemplate | None:
        """Best keyword match over department, use cases, benefits and agents."""
        keywords = [k.lower() for k in keywords if k]
        best: TeamTemplate | None = None
        best_score = 0

        for template in self._teams.values():
            score = 0
            if _matches(keywords, template.department.value):
                score += DEPARTMENT_WEIGHT
            score += USE_CASE_WEIGHT * sum(_matches(keywords, u) for u in template.use_cases)
            score += BENEFIT_WEIGHT * sum(_matches(keywords, b) for b in template.benefits)
            for agent in template.agents:
                if _matches(keywords, agent.name):
                    score += AGENT_WEIGHT
                if _matches(keywords, agent.type):
                    score += AGENT_WEIGHT

            if score > best_score:
                best, best_score = template, score

        return best


class TemplateService:
    """Creates teams and workflows in one workspace from catalog templates."""

    def __init__(self, db: Database, workspace_id: str, catalog: TemplateCatalog):
        self._db = db
        self.workspace_id = workspace_id
        self.catalog = catalog

    def _workflow_template(self, template_id: str) -> WorkflowTemplate:
        template = self.catalog.get_workflow_template(template_id)
        if template is None:
            raise NotFoundError("WorkflowTemplate", template_id)
        return template

    def _team_template(self, template_id: str) -> TeamTemplate:
        template = self.catalog.get_team_template(template_id)
        if template is None:
            raise NotFoundError("TeamTemplate", template_id)
        return template

    async def create_team_from_template(
        self,
        template_id: str,
        name: str | None = None,
        description: str | None = None,
        member_agent_ids: list[str] | None = None,
        provision_agents: bool = False,
        created_by: str | None = None,
    ) -> Team:
        """Create a team with the template's department and autonomy settings.

        Members come either from ``member_agent_ids`` (the first becomes the
        coordinator, the rest specialists, in list order; ids outside the
        workspace are skipped) or, with ``provision_agents``, from new agents
        built from the template's agent roles.

        Raises:
            NotFoundError: If the template does not exist.
        """
        template = self._team_template(template_id)
        team = await self._db.teams.insert(
            Team(
                workspace_id=self.workspace_id,
                name=name or template.name,
                description=description or template.description,
                department=template.department,
                autonomy_level=template.config.autonomy_level,
                approval_required=list(template.config.approval_required),
                max_concurrent_tasks=template.config.max_concurrent_tasks,
                created_by=created_by,
            )
        )

        added = 0
        for index, agent_id in enumerate(member_agent_ids or []):
            agent = await self._db.agents.get(agent_id)
            if agent is None or agent.workspace_id != self.workspace_id:
                logger.warning(
                    "Skipping unknown team member", team_id=team.id, agent_id=agent_id
                )
                continue
            await self._db.team_members.insert(
                TeamMember(
                    team_id=team.id,
                    agent_id=agent.id,
                    role=TeamRole.COORDINATOR if index == 0 else TeamRole.SPECIALIST,
                    priority=index,
                )
            )
            added += 1

        if provision_agents:
            for agent_template in template.agents:
                agent = await self._db.agents.insert(
                    Agent(
                        workspace_id=self.workspace_id,
                        name=agent_template.name,
                        type=agent_template.type,
                        description=agent_template.description,
                        capabilities=list(agent_template.capabilities),
                        tools=list(agent_template.tools),
                    )
                )
                await self._db.team_members.insert(
                    TeamMember(
                        team_id=team.id,
                        agent_id=agent.id,
                        role=agent_template.role,
                        priority=agent_template.priority,
                    )
                )
                added += 1

        logger.info(
            "Team created from template",
            team_id=team.id,
            template_id=template_id,
            department=team.department.value,
            member_count=added,
        )
        return team

    async def agent_mapping_for_team(self, team_id: str) -> dict[str, str]:
        """Agent type -> agent id for the team's members.

        When several members share a type, the one with the lowest priority
        wins.
        """
        members = await self._db.team_members.find_many(
            where=lambda m: m.team_id == team_id,
            order_by=lambda m: m.priority,
        )
        mapping: dict[str, str] = {}
        for member in members:
            agent = await self._db.agents.get(member.agent_id)
            if agent is None or agent.workspace_id != self.workspace_id:
                continue
            mapping.setdefault(agent.type, agent.id)
        return mapping

    async def create_workflow_from_template(
        self,
        template_id: str,
        agent_mapping: dict[str, str] | None = None,
        name: str | None = None,
        description: str | None = None,
        team_id: str | None = None,
    ) -> Workflow:
        """Create a draft workflow from a template.

        Args:
            template_id: Workflow template id.
            agent_mapping: Agent type -> agent id. When omitted the mapping is
                read from ``team_id``'s members.
            name: Workflow name; the template name by default.
            description: Workflow description; the template's by default.
            team_id: Team that owns the workflow.

        Raises:
            NotFoundError: If the template or the team does not exist.
            UnmappedAgentTypeError: If a step's agent type cannot be bound.
        """
        template = self._workflow_template(template_id)
        if team_id is not None:
            team = await self._db.teams.get(team_id)
            if team is None or team.workspace_id != self.workspace_id:
                raise NotFoundError("Team", team_id)
        if agent_mapping is None:
            agent_mapping = await self.agent_mapping_for_team(team_id) if team_id else {}

        steps = convert_template_to_steps(template, agent_mapping)
        workflow = await self._db.workflows.insert(
            Workflow(
                workspace_id=self.workspace_id,
                team_id=team_id,
                name=name or template.name,
                description=description or template.description,
                steps=steps,
                trigger=template.trigger.model_copy(deep=True),
                status=WorkflowStatus.DRAFT,
            )
        )
        logger.info(
            "Workflow created from template",
            workflow_id=workflow.id,
            template_id=template_id,
            step_count=len(steps),
        )
        return workflow
