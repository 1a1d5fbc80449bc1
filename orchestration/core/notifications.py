"""Notification integration for the approval workflow.

The core only builds NotificationEvents and hands them to a sink; delivery
(in-app, email, chat) belongs to whatever consumes the sink.
"""

from typing import Any, Protocol, runtime_checkable

from orchestration.models import (
    ActionAuditEntry,
    AutonomyLevel,
    NotificationEvent,
    NotificationEventType,
    NotificationType,
    PendingAction,
    RiskLevel,
    Team,
)
from orchestration.persistence import Database
from orchestration.utils.logging import get_logger

logger = get_logger(__name__)

RISK_PRESENTATION: dict[RiskLevel, tuple[str, NotificationType]] = {
    RiskLevel.CRITICAL: ("🚨", NotificationType.ERROR),
    RiskLevel.HIGH: ("⚠️", NotificationType.WARNING),
    RiskLevel.MEDIUM: ("📋", NotificationType.WARNING),
    RiskLevel.LOW: ("📝", NotificationType.INFO),
}

LEVEL_EMOJI: dict[AutonomyLevel, str] = {
    AutonomyLevel.SUPERVISED: "👁️",
    AutonomyLevel.SEMI_AUTONOMOUS: "🤖",
    AutonomyLevel.AUTONOMOUS: "🚀",
}

APPROVALS_URL = "/orchestration/approvals"
AUDIT_URL = "/orchestration/audit"


@runtime_checkable
class NotificationSink(Protocol):
    """Anything that accepts notification events."""

    async def publish(self, event: NotificationEvent) -> None: ...


class InMemoryNotificationSink:
    """Collects published events in a list."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def publish(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: NotificationEventType) -> list[NotificationEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


class AutonomyNotifier:
    """Builds approval workflow notifications and publishes them.

    Every method is best-effort: a failing sink is logged and never
    surfaces to the autonomy operation that triggered the notice.
    """

    def __init__(
        self,
        sink: NotificationSink,
        db: Database,
        workspace_id: str,
        notify_user_ids: list[str] | None = None,
        high_pending_threshold: int = 10,
    ):
        """Initialize the notifier.

        Args:
            sink: Where events are published.
            db: Database used to look up team creators.
            workspace_id: Workspace the events belong to.
            notify_user_ids: Users (admins) notified about every approval.
            high_pending_threshold: Pending count that triggers an alert.
        """
        self._sink = sink
        self._db = db
        self.workspace_id = workspace_id
        self.notify_user_ids = list(notify_user_ids or [])
        self.high_pending_threshold = high_pending_threshold

    # ------------------------------------------------------------------
    # Approval notifications
    # ------------------------------------------------------------------

    async def pending_approval(self, action: PendingAction) -> None:
        emoji, notification_type = RISK_PRESENTATION[action.risk_level]
        await self._publish(
            NotificationEventType.PENDING_APPROVAL,
            await self.targets(action.team_id),
            title=f"{emoji} Approval Required: {action.action_type}",
            message=action.description,
            type=notification_type,
            action_url=f"{APPROVALS_URL}?action={action.id}",
            action_label="Review Action",
            metadata={
                "actionId": action.id,
                "actionType": action.action_type,
                "riskLevel": action.risk_level.value,
                "expiresAt": action.expires_at.isoformat(),
            },
        )

    async def action_approved(self, action: PendingAction, reviewer_id: str) -> None:
        await self._publish(
            NotificationEventType.ACTION_APPROVED,
            await self.targets(action.team_id, exclude=reviewer_id),
            title=f"✅ Action Approved: {action.action_type}",
            message=f"{action.description} was approved.",
            type=NotificationType.SUCCESS,
            action_url=f"{AUDIT_URL}?action={action.id}",
            action_label="View Details",
            metadata={
                "actionId": action.id,
                "actionType": action.action_type,
                "reviewerId": reviewer_id,
            },
        )

    async def action_rejected(
        self, action: PendingAction, reviewer_id: str, reason: str | None = None
    ) -> None:
        if reason:
            message = f"{action.description} was rejected: {reason}"
        else:
            message = f"{action.description} was rejected."
        await self._publish(
            NotificationEventType.ACTION_REJECTED,
            await self.targets(action.team_id, exclude=reviewer_id),
            title=f"❌ Action Rejected: {action.action_type}",
            message=message,
            type=NotificationType.WARNING,
            action_url=f"{AUDIT_URL}?action={action.id}",
            action_label="View Details",
            metadata={
                "actionId": action.id,
                "actionType": action.action_type,
                "reviewerId": reviewer_id,
                "reason": reason,
            },
        )

    async def action_expired(self, action: PendingAction) -> None:
        await self._publish(
            NotificationEventType.ACTION_EXPIRED,
            await self.targets(action.team_id),
            title=f"⏰ Action Expired: {action.action_type}",
            message=f"{action.description} expired without review.",
            type=NotificationType.WARNING,
            action_url=f"{AUDIT_URL}?action={action.id}",
            action_label="View Details",
            metadata={"actionId": action.id, "actionType": action.action_type},
        )

    # ------------------------------------------------------------------
    # Team notifications
    # ------------------------------------------------------------------

    async def autonomy_level_changed(
        self,
        team: Team,
        old_level: AutonomyLevel,
        new_level: AutonomyLevel,
        changed_by: str,
    ) -> None:
        old_label = old_level.value.replace("_", " ")
        new_label = new_level.value.replace("_", " ")
        await self._publish(
            NotificationEventType.AUTONOMY_LEVEL_CHANGED,
            await self.targets(team.id, exclude=changed_by),
            title=f"{LEVEL_EMOJI.get(new_level, '📋')} Autonomy Level Changed",
            message=f"{team.name} team changed from {old_label} to {new_label}.",
            type=NotificationType.INFO,
            action_url=f"/orchestration/teams/{team.id}",
            action_label="View Team",
            metadata={
                "teamId": team.id,
                "teamName": team.name,
                "oldLevel": old_level.value,
                "newLevel": new_level.value,
                "changedBy": changed_by,
            },
        )

    async def daily_digest(self, user_id: str, stats: dict[str, Any]) -> None:
        await self._publish(
            NotificationEventType.DAILY_DIGEST,
            [user_id],
            title="📊 Daily Autonomy Digest",
            message=(
                f"{stats['totalActions']} actions processed. "
                f"{stats['autoApproved']} auto-approved, "
                f"{stats['manuallyApproved']} manually approved, "
                f"{stats['rejected']} rejected. "
                f"{stats['pending']} pending review."
            ),
            type=NotificationType.INFO,
            action_url=APPROVALS_URL,
            action_label="View Dashboard",
            metadata={"stats": stats, "digestType": "daily"},
        )

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def high_pending_count(self, count: int) -> None:
        """Alert admins once the pending count reaches the threshold."""
        if count < self.high_pending_threshold:
            return
        await self._publish(
            NotificationEventType.HIGH_PENDING_COUNT,
            await self.targets(),
            title=f"🚨 {count} Actions Awaiting Approval",
            message=(
                f"There are {count} actions waiting for review. Please review "
                "and process them to prevent expiration."
            ),
            type=NotificationType.ERROR,
            action_url=APPROVALS_URL,
            action_label="Review Now",
            metadata={
                "pendingCount": count,
                "threshold": self.high_pending_threshold,
            },
        )

    async def critical_action(self, action: PendingAction) -> None:
        if action.risk_level != RiskLevel.CRITICAL:
            return
        await self._publish(
            NotificationEventType.CRITICAL_ACTION,
            await self.targets(action.team_id),
            title="🚨 CRITICAL: Immediate Review Required",
            message=(
                f'Critical action "{action.action_type}" requires immediate '
                f"review: {action.description}"
            ),
            type=NotificationType.ERROR,
            action_url=f"{APPROVALS_URL}?action={action.id}",
            action_label="Review Now",
            metadata={
                "actionId": action.id,
                "actionType": action.action_type,
                "riskLevel": action.risk_level.value,
                "urgent": True,
            },
        )

    async def action_failed(self, entry: ActionAuditEntry, error: str) -> None:
        await self._publish(
            NotificationEventType.ACTION_FAILED,
            await self.targets(entry.team_id),
            title="❌ Autonomous Action Failed",
            message=f"{entry.action_type} failed: {error}",
            type=NotificationType.ERROR,
            action_url=f"{AUDIT_URL}?entry={entry.id}",
            action_label="View Details",
            metadata={
                "entryId": entry.id,
                "actionType": entry.action_type,
                "error": error,
                "wasAutomatic": entry.was_automatic,
            },
        )

    async def targets(
        self, team_id: str | None = None, exclude: str | None = None
    ) -> list[str]:
        """Configured admins plus the team's creator, without ``exclude``."""
        targets = list(self.notify_user_ids)
        if team_id:
            try:
                team = await self._db.teams.get(team_id)
            except Exception:
                logger.warning("Could not load team for notification", team_id=team_id)
                team = None
            if team is not None and team.created_by and team.created_by not in targets:
                targets.append(team.created_by)
        return [user_id for user_id in targets if user_id != exclude]

    async def _publish(
        self,
        event_type: NotificationEventType,
        user_ids: list[str],
        **fields: Any,
    ) -> None:
        if not user_ids:
            logger.debug("No notification targets", event_type=event_type.value)
            return
        try:
            event = NotificationEvent(
                event_type=event_type,
                workspace_id=self.workspace_id,
                user_ids=user_ids,
                **fields,
            )
            await self._sink.publish(event)
        except Exception:
            logger.error(
                "Failed to publish notification",
                event_type=event_type.value,
                exc_info=True,
            )
            return
        logger.info(
            "Notification published",
            event_type=event_type.value,
            target_count=len(user_ids),
        )
