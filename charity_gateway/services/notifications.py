"""Best-effort notification side effects keyed off approval transitions"""

import logging
from typing import Iterable, Optional

from charity_gateway.domain.exceptions import SideEffectFailure
from charity_gateway.domain.models import Notification, NotificationKind
from charity_gateway.infrastructure.clients.notifications import NotificationClient
from charity_gateway.infrastructure.database.models import Contribution
from charity_gateway.infrastructure.observability.metrics import notification_failure_counter


def _case_title(contribution: Contribution) -> str:
    return contribution.case.title if contribution.case is not None else "Unknown Case"


def _base_data(contribution: Contribution) -> dict:
    return {
        "contribution_id": contribution.id,
        "case_id": contribution.case_id,
        "amount": str(contribution.amount),
        "case_title": _case_title(contribution),
    }


def build_pending_notification(contribution: Contribution) -> Optional[Notification]:
    if not contribution.donor_id:
        return None
    return Notification(
        recipient_id=contribution.donor_id,
        kind=NotificationKind.CONTRIBUTION_PENDING,
        title="Contribution Submitted",
        message=(
            f"Your contribution of {contribution.amount} for \"{_case_title(contribution)}\" "
            "has been submitted and is under review."
        ),
        data=_base_data(contribution),
    )


def build_approval_notification(contribution: Contribution) -> Optional[Notification]:
    if not contribution.donor_id:
        return None
    return Notification(
        recipient_id=contribution.donor_id,
        kind=NotificationKind.CONTRIBUTION_APPROVED,
        title="Contribution Approved",
        message=(
            f"Your contribution of {contribution.amount} for \"{_case_title(contribution)}\" "
            "has been approved. Thank you for your generosity!"
        ),
        data=_base_data(contribution),
    )


def build_rejection_notification(contribution: Contribution, reason: str) -> Optional[Notification]:
    if not contribution.donor_id:
        return None
    data = _base_data(contribution)
    data["rejection_reason"] = reason
    return Notification(
        recipient_id=contribution.donor_id,
        kind=NotificationKind.CONTRIBUTION_REJECTED,
        title="Contribution Rejected",
        message=(
            f"Your contribution of {contribution.amount} for \"{_case_title(contribution)}\" "
            f"has been rejected. Reason: {reason}"
        ),
        data=data,
    )


def build_revision_notification(contribution: Contribution, admin_id: str, donor_reply: str) -> Notification:
    data = _base_data(contribution)
    data["donor_reply"] = donor_reply
    data["resubmission_count"] = (
        contribution.approval_status.resubmission_count if contribution.approval_status else 0
    )
    return Notification(
        recipient_id=admin_id,
        kind=NotificationKind.CONTRIBUTION_REVISED,
        title="Contribution Revision Submitted",
        message="A contribution has been revised and submitted for review. Please check the updated information.",
        data=data,
    )


class NotificationDispatcher:
    """Sends notifications without ever failing the caller"""

    def __init__(self, client: NotificationClient):
        self.client = client

    async def dispatch(self, notification: Optional[Notification]) -> bool:
        """Send one notification; failures are logged, counted and swallowed"""
        if notification is None:
            return False
        try:
            return await self.client.send(notification)
        except SideEffectFailure as e:
            notification_failure_counter.labels(kind=notification.kind.value).inc()
            logging.warning(
                f"Notification delivery failed: {e}",
                extra={"recipient_id": notification.recipient_id, "kind": notification.kind.value},
            )
        except Exception as e:
            notification_failure_counter.labels(kind=notification.kind.value).inc()
            logging.error(
                f"Unexpected error sending notification: {e}",
                extra={"recipient_id": notification.recipient_id, "kind": notification.kind.value},
            )
        return False

    async def contribution_pending(self, contribution: Contribution) -> bool:
        return await self.dispatch(build_pending_notification(contribution))

    async def contribution_approved(self, contribution: Contribution) -> bool:
        return await self.dispatch(build_approval_notification(contribution))

    async def contribution_rejected(self, contribution: Contribution, reason: str) -> bool:
        return await self.dispatch(build_rejection_notification(contribution, reason))

    async def contribution_revised(self, contribution: Contribution, admin_ids: Iterable[str], donor_reply: str) -> int:
        """Notify every admin; returns how many deliveries succeeded"""
        delivered = 0
        for admin_id in admin_ids:
            if await self.dispatch(build_revision_notification(contribution, admin_id, donor_reply)):
                delivered += 1
        return delivered
