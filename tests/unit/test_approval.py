"""Unit tests for the approval state machine rules"""

import pytest
from decimal import Decimal
from charity_gateway.domain.approval import (
    can_resubmit,
    check_acknowledgement,
    check_resubmission,
    ensure_pending,
    parse_action,
    parse_payment_method,
    parse_rejection_reason,
    require_reply,
    validate_amount,
)
from charity_gateway.domain.exceptions import ValidationError
from charity_gateway.domain.models import (
    ApprovalState,
    BatchResult,
    ContributionStatus,
    ModerationAction,
    PaymentMethod,
    RejectionReason,
)


def test_parse_action_accepts_approve_and_reject():
    assert parse_action("approve") is ModerationAction.APPROVE
    assert parse_action("reject") is ModerationAction.REJECT


@pytest.mark.parametrize("action", [None, "", "delete", "APPROVE"])
def test_parse_action_rejects_anything_else(action):
    """Unknown actions fail before any selection or write happens"""
    with pytest.raises(ValidationError, match='action must be either "approve" or "reject"'):
        parse_action(action)


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_rejection_reason_is_mandatory(reason):
    with pytest.raises(ValidationError, match="reason is required"):
        parse_rejection_reason(reason)


def test_rejection_reason_must_be_known_code():
    with pytest.raises(ValidationError, match="Unknown rejection reason"):
        parse_rejection_reason("looked fishy")


def test_rejection_reason_is_trimmed():
    assert parse_rejection_reason(" wrong_amount ") is RejectionReason.WRONG_AMOUNT


def test_payment_method_parsing():
    assert parse_payment_method("mobile_wallet") is PaymentMethod.MOBILE_WALLET
    with pytest.raises(ValidationError, match="Invalid payment method"):
        parse_payment_method("crypto")


@pytest.mark.parametrize("amount", [0, "0", -5, "-0.01"])
def test_amount_must_be_positive(amount):
    with pytest.raises(ValidationError, match="Amount must be greater than 0"):
        validate_amount(amount)


def test_amount_must_be_numeric():
    with pytest.raises(ValidationError, match="Invalid amount"):
        validate_amount("a lot")


def test_amount_is_returned_as_decimal():
    assert validate_amount("250.50") == Decimal("250.50")


def test_ensure_pending_reports_current_status():
    ensure_pending("c-1", "pending")
    with pytest.raises(ValidationError, match=r"Contribution c-1 is not pending \(current status: approved\)"):
        ensure_pending("c-1", "approved")


def test_require_reply_strips_and_rejects_blank():
    assert require_reply("  new receipt attached ") == "new receipt attached"
    with pytest.raises(ValidationError, match="donor_reply is required"):
        require_reply("   ")


def test_resubmission_allowed_below_cap():
    """Counts 0 and 1 can resubmit when the cap is 2"""
    check_resubmission("rejected", 0, 2)
    check_resubmission("rejected", 1, 2)
    assert can_resubmit(1, 2)
    assert not can_resubmit(2, 2)


def test_resubmission_blocked_at_cap():
    with pytest.raises(ValidationError, match="Maximum number of resubmissions reached"):
        check_resubmission("rejected", 2, 2)


@pytest.mark.parametrize("state", [None, "pending", "approved", "acknowledged"])
def test_only_rejected_contributions_can_be_revised(state):
    with pytest.raises(ValidationError, match="Only rejected contributions can be revised"):
        check_resubmission(state, 0, 2)


def test_acknowledgement_requires_rejected_state():
    check_acknowledgement("rejected")
    with pytest.raises(ValidationError, match="Only rejected contributions can be acknowledged"):
        check_acknowledgement("acknowledged")


def test_acknowledged_mirrors_as_rejected():
    assert ApprovalState.ACKNOWLEDGED.coarse is ContributionStatus.REJECTED
    assert ApprovalState.PENDING.coarse is ContributionStatus.PENDING
    assert ApprovalState.APPROVED.coarse is ContributionStatus.APPROVED


def test_batch_result_counts_and_rollback_flag():
    result = BatchResult(batch_id="b-1", total=3)
    result.record_success()
    result.record_success()
    assert result.rollback_available is False

    result.record_failure("c-3", "boom")
    assert result.processed == 3
    assert result.success + result.failed == result.total
    assert result.rollback_available is True
    assert result.errors[0].id == "c-3"
