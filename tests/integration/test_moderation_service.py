"""Integration tests for single-item moderation and the case ledger"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from charity_gateway.domain.exceptions import NotFoundError, NotificationDeliveryError, StoreError, ValidationError
from charity_gateway.domain.models import NotificationKind
from charity_gateway.infrastructure.database.models import (
    Case,
    Contribution,
    ContributionApprovalEvent,
    ContributionApprovalStatus,
)
from charity_gateway.infrastructure.database.repositories import ApprovalStatusRepository, CaseRepository
from charity_gateway.services.ledger import CaseLedger
from charity_gateway.services.moderation import ModerationService
from charity_gateway.services.notifications import NotificationDispatcher
from conftest import ADMIN_ID, CASE_ID, DONOR_ID

pytestmark = pytest.mark.integration


def case_amount(db: Session, case_id: str = CASE_ID) -> Decimal:
    db.expire_all()
    return Decimal(str(db.get(Case, case_id).current_amount))


async def test_approve_writes_record_status_and_ledger(seeded, make_contribution, dispatcher, notification_client):
    """Approval mirrors status, adds the amount to the case and notifies the payer"""
    make_contribution(amount="100", contribution_id="c-1")

    record = await ModerationService(seeded, dispatcher).approve("c-1", ADMIN_ID, admin_comment="receipt checked")

    assert record.status == "approved"
    assert record.admin_id == ADMIN_ID
    assert record.admin_comment == "receipt checked"
    assert record.resubmission_count == 0
    assert seeded.get(Contribution, "c-1").status == "approved"
    assert case_amount(seeded) == Decimal("100")

    events = seeded.query(ContributionApprovalEvent).filter_by(contribution_id="c-1").all()
    assert [e.kind for e in events] == ["approved"]

    notification = notification_client.send.await_args.args[0]
    assert notification.kind is NotificationKind.CONTRIBUTION_APPROVED
    assert notification.recipient_id == DONOR_ID
    assert notification.data["case_title"] == "Clean Water"


async def test_ledger_is_additive_across_approvals(seeded, make_contribution, dispatcher):
    make_contribution(amount="100", contribution_id="c-1")
    make_contribution(amount="250", contribution_id="c-2")
    service = ModerationService(seeded, dispatcher)

    await service.approve("c-1", ADMIN_ID)
    await service.approve("c-2", ADMIN_ID)

    assert case_amount(seeded) == Decimal("350")


async def test_reapproval_is_rejected_and_ledger_unchanged(seeded, make_contribution, dispatcher):
    make_contribution(amount="100", contribution_id="c-1")
    service = ModerationService(seeded, dispatcher)
    await service.approve("c-1", ADMIN_ID)

    with pytest.raises(ValidationError, match="is not pending"):
        await service.approve("c-1", ADMIN_ID)

    assert case_amount(seeded) == Decimal("100")
    assert seeded.query(ContributionApprovalEvent).count() == 1


async def test_reject_requires_reason_and_writes_nothing(seeded, make_contribution, dispatcher, notification_client):
    make_contribution(contribution_id="c-1")

    with pytest.raises(ValidationError, match="reason is required"):
        await ModerationService(seeded, dispatcher).reject("c-1", ADMIN_ID, None)

    seeded.expire_all()
    contribution = seeded.get(Contribution, "c-1")
    assert contribution.status == "pending"
    assert contribution.approval_status is None
    notification_client.send.assert_not_awaited()


async def test_reject_stores_reason_and_leaves_case_total(seeded, make_contribution, dispatcher, notification_client):
    make_contribution(amount="75", contribution_id="c-1")

    record = await ModerationService(seeded, dispatcher).reject(
        "c-1", ADMIN_ID, "payment_not_received", admin_comment="no transfer found"
    )

    assert record.status == "rejected"
    assert record.rejection_reason == "payment_not_received"
    contribution = seeded.get(Contribution, "c-1")
    assert contribution.status == "rejected"
    assert contribution.notes == "payment_not_received"
    assert case_amount(seeded) == Decimal("0")

    notification = notification_client.send.await_args.args[0]
    assert notification.kind is NotificationKind.CONTRIBUTION_REJECTED
    assert notification.data["rejection_reason"] == "payment_not_received"


async def test_set_status_only_accepts_terminal_admin_states(seeded, make_contribution, dispatcher):
    make_contribution(contribution_id="c-1")
    with pytest.raises(ValidationError, match='status must be either "approved" or "rejected"'):
        await ModerationService(seeded, dispatcher).set_status("c-1", "acknowledged", ADMIN_ID)


async def test_unknown_contribution_is_not_found(seeded, dispatcher):
    with pytest.raises(NotFoundError):
        await ModerationService(seeded, dispatcher).approve("missing", ADMIN_ID)


async def test_approval_without_case_is_not_found(seeded, make_contribution, dispatcher):
    make_contribution(case_id="case-gone", contribution_id="c-1")
    with pytest.raises(NotFoundError, match="Case case-gone not found"):
        await ModerationService(seeded, dispatcher).approve("c-1", ADMIN_ID)
    seeded.expire_all()
    assert seeded.get(Contribution, "c-1").status == "pending"


async def test_notification_failure_does_not_fail_approval(seeded, make_contribution):
    make_contribution(amount="40", contribution_id="c-1")
    failing = AsyncMock()
    failing.send.side_effect = NotificationDeliveryError("Notification service error: 503")

    record = await ModerationService(seeded, NotificationDispatcher(failing)).approve("c-1", ADMIN_ID)

    assert record.status == "approved"
    assert case_amount(seeded) == Decimal("40")


async def test_ledger_failure_is_non_fatal_and_reconcile_repairs_it(seeded, make_contribution, dispatcher):
    """A skipped increment leaves the approval in place; reconcile restores the total"""
    make_contribution(amount="60", contribution_id="c-1")

    with patch.object(
        CaseRepository, "increment_amount", side_effect=OperationalError("UPDATE cases", {}, Exception("locked"))
    ):
        record = await ModerationService(seeded, dispatcher).approve("c-1", ADMIN_ID)

    assert record.status == "approved"
    assert case_amount(seeded) == Decimal("0")

    previous, total = CaseLedger(seeded).reconcile(CASE_ID)
    assert previous == Decimal("0")
    assert total == Decimal("60")
    assert case_amount(seeded) == Decimal("60")


async def test_failed_history_write_discards_new_record(seeded, make_contribution, dispatcher, notification_client):
    """A store failure after the record insert leaves no record, no status change and no ledger movement"""
    make_contribution(amount="100", contribution_id="c-1")

    with patch.object(
        ApprovalStatusRepository, "add_event", side_effect=OperationalError("INSERT", {}, Exception("disk full"))
    ):
        with pytest.raises(StoreError, match="Failed to record approved for contribution c-1"):
            await ModerationService(seeded, dispatcher).approve("c-1", ADMIN_ID)

    seeded.expire_all()
    assert seeded.query(ContributionApprovalStatus).count() == 0
    assert seeded.get(Contribution, "c-1").status == "pending"
    assert case_amount(seeded) == Decimal("0")
    notification_client.send.assert_not_awaited()


async def test_concurrent_approval_is_refused(seeded, make_contribution, dispatcher, notification_client):
    """Another writer approved the row after it was loaded; the stale copy must not approve it again"""
    make_contribution(amount="100", contribution_id="c-1")
    seeded.execute(
        update(Contribution)
        .where(Contribution.id == "c-1")
        .values(status="approved")
        .execution_options(synchronize_session=False)
    )
    seeded.commit()
    assert seeded.get(Contribution, "c-1").status == "pending"

    with pytest.raises(ValidationError, match="Contribution c-1 is no longer pending"):
        await ModerationService(seeded, dispatcher).approve("c-1", ADMIN_ID)

    seeded.expire_all()
    assert seeded.query(ContributionApprovalStatus).count() == 0
    assert seeded.query(ContributionApprovalEvent).count() == 0
    assert seeded.get(Contribution, "c-1").status == "approved"
    assert case_amount(seeded) == Decimal("0")
    notification_client.send.assert_not_awaited()


def test_reconcile_unknown_case(seeded):
    with pytest.raises(NotFoundError):
        CaseLedger(seeded).reconcile("missing")


def test_ledger_apply_reports_missing_case(seeded):
    assert CaseLedger(seeded).apply("missing", Decimal("10")) is False
