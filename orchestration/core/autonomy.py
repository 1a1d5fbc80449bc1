"""Autonomy Service - Risk classification and the human approval gate.

Actions are classified into four risk levels by substring rules plus
payload escalators, checked against the team's autonomy policy, and queued
for review when approval is required. Every executed or reviewed action is
written to the append-only audit log.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from orchestration.models import (
    RISK_ORDER,
    ActionAuditEntry,
    ApprovalDecision,
    AuditInput,
    AuditLogFilters,
    AutoExecuteDecision,
    AutonomyLevel,
    BulkApprovalResult,
    Department,
    DepartmentMetrics,
    PendingAction,
    PendingActionFilters,
    PendingActionStatus,
    QueueActionInput,
    RiskClassification,
    RiskLevel,
    Team,
    TeamAutonomyStats,
)
from orchestration.persistence import Database
from orchestration.utils.config import AutonomyConfig
from orchestration.utils.exceptions import (
    ApprovalExpiredError,
    InvalidStateError,
    NotFoundError,
    OrchestrationError,
)
from orchestration.utils.logging import get_logger

from .notifications import AutonomyNotifier

logger = get_logger(__name__)


# ============================================================================
# Default risk rules
# ============================================================================

DEFAULT_RISK_RULES: dict[RiskLevel, list[str]] = {
    RiskLevel.LOW: [
        "read_data",
        "list_items",
        "get_status",
        "log_activity",
        "update_internal_note",
        "fetch_analytics",
        "check_availability",
        "retrieve_memory",
        "store_context",
    ],
    RiskLevel.MEDIUM: [
        "create_task",
        "update_task",
        "create_note",
        "update_crm_field",
        "send_internal_notification",
        "schedule_reminder",
        "tag_contact",
        "update_lead_status",
        "create_draft",
    ],
    RiskLevel.HIGH: [
        "send_email",
        "send_message",
        "schedule_meeting",
        "update_calendar",
        "modify_contact",
        "update_deal_value",
        "change_pipeline_stage",
        "external_api_call",
        "publish_content",
    ],
    RiskLevel.CRITICAL: [
        "financial_transaction",
        "delete_data",
        "bulk_delete",
        "send_mass_email",
        "update_payment",
        "modify_subscription",
        "export_data",
        "customer_communication",
        "contract_modification",
    ],
}

TIER_REASONS: dict[RiskLevel, str] = {
    RiskLevel.CRITICAL: "Action type '{}' is classified as critical",
    RiskLevel.HIGH: "Action type '{}' involves external communication or data modification",
    RiskLevel.MEDIUM: "Action type '{}' modifies internal data",
    RiskLevel.LOW: "Action type '{}' is read-only or internal",
}

BULK_COUNT_THRESHOLD = 10


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _at_least(current: RiskLevel, floor: RiskLevel) -> RiskLevel:
    return current if current.rank >= floor.rank else floor


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class AutonomyService:
    """Workspace-scoped approval gate and audit trail."""

    def __init__(
        self,
        db: Database,
        workspace_id: str,
        config: AutonomyConfig | None = None,
        notifier: AutonomyNotifier | None = None,
    ):
        """Initialize the service.

        Args:
            db: Database with team, pending action and audit repositories.
            workspace_id: Workspace every operation is scoped to.
            config: Approval settings; ``risk_rules`` replaces built-in tiers.
            notifier: Optional notifier for approval events.
        """
        self._db = db
        self.workspace_id = workspace_id
        self._config = config or AutonomyConfig()
        self._notifier = notifier
        self.risk_rules: dict[RiskLevel, list[str]] = {
            **DEFAULT_RISK_RULES,
            **{RiskLevel(level): patterns for level, patterns in self._config.risk_rules.items()},
        }

    # ==========================================================================
    # Risk classification
    # ==========================================================================

    def classify_risk(
        self, action_type: str, action_data: dict[str, Any] | None = None
    ) -> RiskClassification:
        """Classify an action by type and payload.

        Tiers are checked from critical down and the first substring match
        wins; an unmatched type is medium. Payload escalators only raise
        the level.
        """
        reasons: list[str] = []
        for level in reversed(RISK_ORDER):
            if any(pattern in action_type for pattern in self.risk_rules.get(level, [])):
                risk = level
                reasons.append(TIER_REASONS[level].format(action_type))
                break
        else:
            risk = RiskLevel.MEDIUM
            reasons.append(f"Unknown action type '{action_type}' defaulting to medium risk")

        data = action_data or {}

        count = data.get("count")
        if _is_number(count) and count > BULK_COUNT_THRESHOLD:
            if risk in (RiskLevel.LOW, RiskLevel.MEDIUM):
                risk = RISK_ORDER[risk.rank + 1]
            reasons.append(f"Bulk operation affecting {count} items")

        if data.get("externalRecipient") or data.get("toExternal"):
            risk = _at_least(risk, RiskLevel.HIGH)
            reasons.append("Action involves external recipient")

        amount = data.get("amount") or data.get("value")
        if _is_number(amount) and amount > 0:
            risk = RiskLevel.CRITICAL
            reasons.append(f"Action involves monetary value: {amount}")

        if data.get("delete") or data.get("remove") or data.get("destroy"):
            risk = _at_least(risk, RiskLevel.HIGH)
            reasons.append("Action involves deletion")

        return RiskClassification(risk_level=risk, reasons=reasons)

    async def requires_approval(
        self,
        team_id: str | None,
        action_type: str,
        action_data: dict[str, Any] | None = None,
    ) -> RiskClassification:
        """Apply the team's autonomy policy to the action's risk."""
        classification = self.classify_risk(action_type, action_data)
        risk = classification.risk_level
        reasons = classification.reasons

        if not team_id:
            required = risk != RiskLevel.LOW
        else:
            team = await self._get_team(team_id)
            if team is None:
                required = True
                reasons.append("Team not found - requiring approval for safety")
            elif action_type in team.approval_required:
                required = True
                reasons.append(
                    f"Action '{action_type}' is explicitly configured to require approval"
                )
            elif team.autonomy_level == AutonomyLevel.SUPERVISED:
                required = True
                reasons.append("Team is in supervised mode - all actions require approval")
            elif team.autonomy_level == AutonomyLevel.SEMI_AUTONOMOUS:
                required = risk != RiskLevel.LOW
                if required:
                    reasons.append(
                        f"Semi-autonomous mode: {risk.value} risk requires approval"
                    )
            elif team.autonomy_level == AutonomyLevel.AUTONOMOUS:
                required = risk == RiskLevel.CRITICAL
                if required:
                    reasons.append("Autonomous mode: critical risk always requires approval")
            else:
                required = True
                reasons.append("Unknown autonomy level - requiring approval for safety")

        classification.requires_approval = required
        return classification

    async def can_auto_execute(
        self,
        team_id: str | None,
        action_type: str,
        action_data: dict[str, Any] | None = None,
    ) -> AutoExecuteDecision:
        classification = await self.requires_approval(team_id, action_type, action_data)
        return AutoExecuteDecision(
            can_execute=not classification.requires_approval,
            classification=classification,
        )

    # ==========================================================================
    # Approval queue
    # ==========================================================================

    async def queue_for_approval(self, action: QueueActionInput) -> str:
        """Classify and queue an action for review.

        Returns:
            The pending action id.

        Raises:
            Exception: Persistence failures are logged and re-raised.
        """
        classification = await self.requires_approval(
            action.team_id, action.action_type, action.action_data
        )
        hours = action.expires_in_hours or self._config.approval_expiry_hours
        try:
            pending = await self._db.pending_actions.insert(
                PendingAction(
                    workspace_id=self.workspace_id,
                    team_id=action.team_id,
                    agent_id=action.agent_id,
                    workflow_execution_id=action.workflow_execution_id,
                    action_type=action.action_type,
                    action_data=action.action_data,
                    description=action.description,
                    risk_level=classification.risk_level,
                    risk_reasons=classification.reasons,
                    expires_at=datetime.now(UTC) + timedelta(hours=hours),
                )
            )
        except Exception:
            logger.error(
                "Failed to queue action for approval",
                action_type=action.action_type,
                exc_info=True,
            )
            raise

        logger.info(
            "Action queued for approval",
            action_id=pending.id,
            action_type=pending.action_type,
            risk_level=pending.risk_level.value,
            team_id=pending.team_id,
        )
        if self._notifier is not None:
            await self._notifier.pending_approval(pending)
            await self._notifier.critical_action(pending)
            await self._notifier.high_pending_count(await self.get_pending_count())
        return pending.id

    async def get_pending_actions(
        self, filters: PendingActionFilters | None = None
    ) -> list[PendingAction]:
        """Pending actions matching ``filters``, newest first."""
        filters = filters or PendingActionFilters()

        def matches(action: PendingAction) -> bool:
            if action.workspace_id != self.workspace_id:
                return False
            if filters.team_id and action.team_id != filters.team_id:
                return False
            if filters.agent_id and action.agent_id != filters.agent_id:
                return False
            if filters.status and action.status != filters.status:
                return False
            if filters.risk_level and action.risk_level != filters.risk_level:
                return False
            if filters.action_type and action.action_type != filters.action_type:
                return False
            return True

        return await self._db.pending_actions.find_many(
            where=matches,
            order_by=lambda a: a.created_at,
            descending=True,
            limit=filters.limit,
            offset=filters.offset,
        )

    async def get_pending_action(self, action_id: str) -> PendingAction | None:
        try:
            action = await self._db.pending_actions.get(action_id)
        except Exception:
            logger.error("Failed to get pending action", action_id=action_id, exc_info=True)
            return None
        if action is None or action.workspace_id != self.workspace_id:
            return None
        return action

    async def get_pending_count(self, team_id: str | None = None) -> int:
        return await self._db.pending_actions.count(
            lambda a: a.workspace_id == self.workspace_id
            and a.status == PendingActionStatus.PENDING
            and (team_id is None or a.team_id == team_id)
        )

    async def review(self, decision: ApprovalDecision) -> PendingAction:
        """Approve or reject a pending action and audit the decision.

        An action found past its deadline is marked expired first.

        Raises:
            NotFoundError: If the action does not exist.
            InvalidStateError: If the action is no longer pending.
            ApprovalExpiredError: If the action has expired.
        """
        action = await self.get_pending_action(decision.action_id)
        if action is None:
            raise NotFoundError("PendingAction", decision.action_id)

        now = datetime.now(UTC)
        expired = False

        def apply(current: PendingAction) -> dict[str, Any] | None:
            nonlocal expired
            if current.status != PendingActionStatus.PENDING:
                raise InvalidStateError(
                    f"Action is not pending (status: {current.status.value})",
                    current_state=current.status.value,
                )
            if current.expires_at < now:
                expired = True
                return {"status": PendingActionStatus.EXPIRED}
            return {
                "status": (
                    PendingActionStatus.APPROVED
                    if decision.approved
                    else PendingActionStatus.REJECTED
                ),
                "reviewed_by": decision.reviewer_id,
                "reviewed_at": now,
                "review_notes": decision.review_notes,
            }

        updated = await self._db.pending_actions.modify(action.id, apply)
        if updated is None:
            raise NotFoundError("PendingAction", decision.action_id)

        if expired:
            logger.warning("Action has expired", action_id=action.id)
            if self._notifier is not None:
                await self._notifier.action_expired(updated)
            raise ApprovalExpiredError(action.id)

        await self.record_audit(
            AuditInput(
                team_id=updated.team_id,
                agent_id=updated.agent_id,
                action_type=updated.action_type,
                action_data=updated.action_data,
                was_automatic=False,
                approval_id=updated.id,
                risk_level=updated.risk_level,
                success=decision.approved,
                error=(
                    None
                    if decision.approved
                    else f"Rejected: {decision.review_notes or 'No reason provided'}"
                ),
            )
        )
        logger.info(
            "Approval processed",
            action_id=updated.id,
            approved=decision.approved,
            reviewer_id=decision.reviewer_id,
        )

        if self._notifier is not None:
            if decision.approved:
                await self._notifier.action_approved(updated, decision.reviewer_id)
            else:
                await self._notifier.action_rejected(
                    updated, decision.reviewer_id, decision.review_notes
                )
        return updated

    async def process_approval(self, decision: ApprovalDecision) -> bool:
        """Result-style wrapper around ``review``.

        Returns False when the action is missing, not pending or expired.
        """
        try:
            await self.review(decision)
        except OrchestrationError as e:
            logger.warning(
                "Approval not processed", action_id=decision.action_id, reason=e.message
            )
            return False
        return True

    async def process_bulk_approval(
        self,
        action_ids: list[str],
        approved: bool,
        reviewer_id: str,
        review_notes: str | None = None,
    ) -> BulkApprovalResult:
        """Review each action independently and tally the outcomes."""
        result = BulkApprovalResult()
        for action_id in action_ids:
            try:
                ok = await self.process_approval(
                    ApprovalDecision(
                        action_id=action_id,
                        approved=approved,
                        reviewer_id=reviewer_id,
                        review_notes=review_notes,
                    )
                )
            except Exception:
                logger.error("Bulk approval item failed", action_id=action_id, exc_info=True)
                ok = False
            if ok:
                result.processed += 1
            else:
                result.failed += 1

        logger.info(
            "Bulk approval completed",
            total=len(action_ids),
            processed=result.processed,
            failed=result.failed,
            approved=approved,
        )
        return result

    async def expire_pending_actions(self) -> int:
        """Mark every overdue pending action as expired.

        Returns:
            Number of actions expired.
        """
        now = datetime.now(UTC)
        try:
            overdue = await self._db.pending_actions.find_many(
                where=lambda a: a.workspace_id == self.workspace_id
                and a.status == PendingActionStatus.PENDING
                and a.expires_at <= now
            )
            expired: list[PendingAction] = []
            for action in overdue:
                updated = await self._db.pending_actions.modify(
                    action.id,
                    lambda a: (
                        {"status": PendingActionStatus.EXPIRED}
                        if a.status == PendingActionStatus.PENDING
                        else None
                    ),
                )
                if updated is not None and updated.status == PendingActionStatus.EXPIRED:
                    expired.append(updated)
        except Exception:
            logger.error("Failed to expire pending actions", exc_info=True)
            return 0

        logger.info("Expired pending actions", count=len(expired))
        if self._notifier is not None:
            for action in expired:
                await self._notifier.action_expired(action)
        return len(expired)

    # ==========================================================================
    # Audit log
    # ==========================================================================

    async def record_audit(self, entry: AuditInput) -> str:
        """Append an audit entry.

        Raises:
            Exception: Persistence failures are logged and re-raised.
        """
        try:
            stored = await self._db.audit_log.insert(
                ActionAuditEntry(
                    workspace_id=self.workspace_id,
                    **entry.model_dump(),
                )
            )
        except Exception:
            logger.error(
                "Failed to record audit", action_type=entry.action_type, exc_info=True
            )
            raise

        if self._notifier is not None and entry.was_automatic and not entry.success:
            await self._notifier.action_failed(stored, entry.error or "Unknown error")
        return stored.id

    async def record_auto_execution(self, entry: AuditInput) -> str:
        """Audit an action that ran without review."""
        return await self.record_audit(entry.model_copy(update={"was_automatic": True}))

    async def get_audit_log(
        self, filters: AuditLogFilters | None = None
    ) -> list[ActionAuditEntry]:
        """Audit entries matching ``filters``, newest first."""
        filters = filters or AuditLogFilters()

        def matches(entry: ActionAuditEntry) -> bool:
            if entry.workspace_id != self.workspace_id:
                return False
            if filters.team_id and entry.team_id != filters.team_id:
                return False
            if filters.agent_id and entry.agent_id != filters.agent_id:
                return False
            if filters.action_type and entry.action_type != filters.action_type:
                return False
            if filters.was_automatic is not None and entry.was_automatic != filters.was_automatic:
                return False
            if filters.success is not None and entry.success != filters.success:
                return False
            if filters.start_date and entry.executed_at < filters.start_date:
                return False
            if filters.end_date and entry.executed_at > filters.end_date:
                return False
            return True

        return await self._db.audit_log.find_many(
            where=matches,
            order_by=lambda e: e.executed_at,
            descending=True,
            limit=filters.limit,
            offset=filters.offset,
        )

    # ==========================================================================
    # Team policy
    # ==========================================================================

    async def update_autonomy_level(
        self, team_id: str, level: AutonomyLevel, changed_by: str
    ) -> Team:
        """Change a team's autonomy level and notify its reviewers.

        Raises:
            NotFoundError: If the team does not exist.
        """
        team = await self._get_team(team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        old_level = team.autonomy_level

        updated = await self._db.teams.update(
            team_id, autonomy_level=level, updated_at=datetime.now(UTC)
        )
        if updated is None:
            raise NotFoundError("Team", team_id)

        logger.info(
            "Autonomy level changed",
            team_id=team_id,
            old_level=old_level.value,
            new_level=level.value,
            changed_by=changed_by,
        )
        if self._notifier is not None and old_level != level:
            await self._notifier.autonomy_level_changed(
                updated, old_level, level, changed_by
            )
        return updated

    # ==========================================================================
    # Metrics
    # ==========================================================================

    async def get_department_metrics(
        self, department: Department | None = None
    ) -> list[DepartmentMetrics]:
        """Audit and approval figures per department."""
        try:
            teams = await self._db.teams.find_many(
                where=lambda t: t.workspace_id == self.workspace_id
                and (department is None or t.department == department)
            )
            by_department: dict[Department, list[Team]] = {}
            for team in teams:
                by_department.setdefault(team.department, []).append(team)

            metrics: list[DepartmentMetrics] = []
            for dept, dept_teams in by_department.items():
                team_ids = {t.id for t in dept_teams}
                entries = await self._db.audit_log.find_many(
                    where=lambda e: e.workspace_id == self.workspace_id
                    and e.team_id in team_ids
                )
                actions = await self._db.pending_actions.find_many(
                    where=lambda a: a.workspace_id == self.workspace_id
                    and a.team_id in team_ids
                )

                total = len(entries)
                automatic = sum(1 for e in entries if e.was_automatic)
                succeeded = sum(1 for e in entries if e.success)
                durations = [e.duration_ms for e in entries if e.duration_ms is not None]

                metrics.append(
                    DepartmentMetrics(
                        department=dept,
                        team_count=len(dept_teams),
                        active_teams=sum(1 for t in dept_teams if t.is_active),
                        total_actions=total,
                        auto_approved_actions=automatic,
                        manually_approved_actions=total - automatic,
                        rejected_actions=sum(
                            1 for a in actions if a.status == PendingActionStatus.REJECTED
                        ),
                        pending_approvals=sum(
                            1 for a in actions if a.status == PendingActionStatus.PENDING
                        ),
                        success_rate=(succeeded / total * 100) if total else 0.0,
                        avg_response_time_ms=(
                            sum(durations) / len(durations) if durations else 0.0
                        ),
                    )
                )
            return metrics
        except Exception:
            logger.error("Failed to get department metrics", exc_info=True)
            return []

    async def get_team_autonomy_stats(self) -> list[TeamAutonomyStats]:
        """Per-team action counts, including today's review decisions."""
        try:
            teams = await self._db.teams.find_many(
                where=lambda t: t.workspace_id == self.workspace_id
            )
            today = _start_of_day(datetime.now(UTC))

            stats: list[TeamAutonomyStats] = []
            for team in teams:
                entries = await self._db.audit_log.find_many(
                    where=lambda e: e.workspace_id == self.workspace_id
                    and e.team_id == team.id,
                    order_by=lambda e: e.executed_at,
                    descending=True,
                )
                actions = await self._db.pending_actions.find_many(
                    where=lambda a: a.workspace_id == self.workspace_id
                    and a.team_id == team.id
                )

                def reviewed_today(status: PendingActionStatus) -> int:
                    return sum(
                        1
                        for a in actions
                        if a.status == status
                        and a.reviewed_at is not None
                        and a.reviewed_at >= today
                    )

                stats.append(
                    TeamAutonomyStats(
                        team_id=team.id,
                        team_name=team.name,
                        autonomy_level=team.autonomy_level,
                        total_actions=len(entries),
                        auto_executed=sum(1 for e in entries if e.was_automatic),
                        awaiting_approval=sum(
                            1 for a in actions if a.status == PendingActionStatus.PENDING
                        ),
                        approved_today=reviewed_today(PendingActionStatus.APPROVED),
                        rejected_today=reviewed_today(PendingActionStatus.REJECTED),
                        last_action_at=entries[0].executed_at if entries else None,
                    )
                )
            return stats
        except Exception:
            logger.error("Failed to get team autonomy stats", exc_info=True)
            return []

    async def send_daily_digest(self, user_id: str) -> dict[str, Any]:
        """Publish the daily digest to ``user_id`` and return its figures."""
        metrics = await self.get_department_metrics()
        total = sum(m.total_actions for m in metrics)
        succeeded = sum(m.success_rate * m.total_actions / 100 for m in metrics)
        stats = {
            "totalActions": total,
            "autoApproved": sum(m.auto_approved_actions for m in metrics),
            "manuallyApproved": sum(m.manually_approved_actions for m in metrics),
            "rejected": sum(m.rejected_actions for m in metrics),
            "pending": sum(m.pending_approvals for m in metrics),
            "successRate": round(succeeded / total * 100, 1) if total else 0.0,
        }
        if self._notifier is not None:
            await self._notifier.daily_digest(user_id, stats)
        return stats

    async def _get_team(self, team_id: str) -> Team | None:
        team = await self._db.teams.get(team_id)
        if team is None or team.workspace_id != self.workspace_id:
            return None
        return team
