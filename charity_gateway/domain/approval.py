"""Approval state machine - pure rules for moderation and donor revisions"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from charity_gateway.domain.exceptions import ValidationError
from charity_gateway.domain.models import (
    ApprovalState,
    ContributionStatus,
    ModerationAction,
    PaymentMethod,
    RejectionReason,
)


def parse_action(action: Optional[str]) -> ModerationAction:
    """Validate a batch action string"""
    try:
        return ModerationAction(action)
    except ValueError:
        raise ValidationError('action must be either "approve" or "reject"')


def parse_rejection_reason(reason: Optional[str]) -> RejectionReason:
    """
    Validate a rejection reason.

    A reason is mandatory for every reject transition and must be one of the
    enumerated codes.
    """
    if reason is None or not str(reason).strip():
        raise ValidationError("reason is required when rejecting contributions")
    try:
        return RejectionReason(str(reason).strip())
    except ValueError:
        allowed = ", ".join(r.value for r in RejectionReason)
        raise ValidationError(f"Unknown rejection reason '{reason}'. Expected one of: {allowed}")


def parse_payment_method(method: Optional[str]) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError:
        raise ValidationError(f"Invalid payment method: {method}")


def validate_amount(amount) -> Decimal:
    """Contribution amounts are positive decimals"""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {amount}")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than 0")
    return value


def ensure_pending(contribution_id: str, status: str) -> None:
    """Moderation transitions only start from a pending contribution"""
    if status != ContributionStatus.PENDING.value:
        raise ValidationError(
            f"Contribution {contribution_id} is not pending (current status: {status})"
        )


def require_reply(donor_reply: Optional[str]) -> str:
    reply = (donor_reply or "").strip()
    if not reply:
        raise ValidationError("donor_reply is required")
    return reply


def can_resubmit(resubmission_count: int, max_resubmissions: int) -> bool:
    return (resubmission_count or 0) < max_resubmissions


def check_resubmission(state: str, resubmission_count: int, max_resubmissions: int) -> None:
    """
    Guard for a donor resubmission.

    Requirements:
    - the latest approval state is rejected
    - the donor has resubmitted fewer than max_resubmissions times; at the cap
      the rejection can only be acknowledged
    """
    if state != ApprovalState.REJECTED.value:
        raise ValidationError("Only rejected contributions can be revised")
    if not can_resubmit(resubmission_count, max_resubmissions):
        raise ValidationError(
            "Maximum number of resubmissions reached. You can only acknowledge the rejection."
        )


def check_acknowledgement(state: str) -> None:
    if state != ApprovalState.REJECTED.value:
        raise ValidationError("Only rejected contributions can be acknowledged")
