"""Single-item approval service: approve or reject one pending contribution"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from charity_gateway.domain.approval import ensure_pending, parse_rejection_reason
from charity_gateway.domain.exceptions import DomainException, NotFoundError, StoreError, ValidationError
from charity_gateway.domain.models import ApprovalEventKind, ApprovalState, ContributionStatus, RejectionReason
from charity_gateway.infrastructure.database.models import Contribution, ContributionApprovalStatus
from charity_gateway.infrastructure.database.repositories import ApprovalStatusRepository, ContributionRepository
from charity_gateway.infrastructure.observability.metrics import record_moderation
from charity_gateway.services.ledger import CaseLedger
from charity_gateway.services.notifications import NotificationDispatcher
from charity_gateway.utils.date_utils import utcnow


def commit_or_raise(db: Session, what: str) -> None:
    """Commit the unit of work, translating store failures"""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to commit {what}: {e}") from e


class ModerationService:
    """
    Approval state transitions for a single contribution.

    The stage_* methods validate and write one transition inside a savepoint
    without committing; the batch orchestrator reuses them per item. The
    approval record and the contribution's coarse status are written together,
    so a failed contribution write also discards a freshly created approval
    record.
    """

    def __init__(self, db: Session, dispatcher: NotificationDispatcher, ledger: Optional[CaseLedger] = None):
        self.db = db
        self.dispatcher = dispatcher
        self.ledger = ledger or CaseLedger(db)
        self.contributions = ContributionRepository(db)
        self.approvals = ApprovalStatusRepository(db)

    def get_contribution(self, contribution_id: str) -> Contribution:
        contribution = self.contributions.get(contribution_id)
        if contribution is None:
            raise NotFoundError(f"Contribution {contribution_id} not found")
        return contribution

    def write_transition(
        self,
        contribution: Contribution,
        state: ApprovalState,
        kind: ApprovalEventKind,
        actor_id: Optional[str],
        expected_status: ContributionStatus,
        contribution_fields: Optional[dict] = None,
        **fields,
    ) -> ContributionApprovalStatus:
        """
        Merge the approval record and mirror its status onto the contribution, atomically.

        The coarse status is claimed with a conditional update first, so two
        writers racing on the same contribution cannot both pass the check.
        """
        try:
            with self.db.begin_nested():
                claimed = self.contributions.transition_status(
                    contribution.id, expected_status.value, state.coarse.value
                )
                if not claimed:
                    raise ValidationError(
                        f"Contribution {contribution.id} is no longer {expected_status.value}"
                    )

                record = contribution.approval_status
                if record is None:
                    record = ContributionApprovalStatus(resubmission_count=0)
                    contribution.approval_status = record

                now = utcnow()
                record.status = state.value
                for name, value in fields.items():
                    setattr(record, name, value)
                record.updated_at = now

                contribution.status = state.coarse.value
                for name, value in (contribution_fields or {}).items():
                    setattr(contribution, name, value)
                contribution.updated_at = now
                self.db.flush()

                self.approvals.add_event(record, kind.value, actor_id)
                self.db.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to record {kind.value} for contribution {contribution.id}: {e}") from e
        return record

    def stage_approval(
        self, contribution: Contribution, admin_id: str, admin_comment: Optional[str] = None
    ) -> ContributionApprovalStatus:
        ensure_pending(contribution.id, contribution.status)
        if not contribution.case_id or contribution.case is None:
            raise NotFoundError(f"Case {contribution.case_id} not found for contribution {contribution.id}")

        return self.write_transition(
            contribution,
            ApprovalState.APPROVED,
            ApprovalEventKind.APPROVED,
            admin_id,
            ContributionStatus.PENDING,
            admin_id=admin_id,
            admin_comment=admin_comment,
            rejection_reason=None,
        )

    def stage_rejection(
        self,
        contribution: Contribution,
        admin_id: str,
        reason: RejectionReason,
        admin_comment: Optional[str] = None,
    ) -> ContributionApprovalStatus:
        ensure_pending(contribution.id, contribution.status)
        # Counter is left as is; only a donor resubmission increments it
        return self.write_transition(
            contribution,
            ApprovalState.REJECTED,
            ApprovalEventKind.REJECTED,
            admin_id,
            ContributionStatus.PENDING,
            contribution_fields={"notes": reason.value},
            admin_id=admin_id,
            rejection_reason=reason.value,
            admin_comment=admin_comment,
        )

    async def approve(
        self, contribution_id: str, admin_id: str, admin_comment: Optional[str] = None
    ) -> ContributionApprovalStatus:
        """
        Approve one pending contribution.

        Flow:
        1. Write approval record + coarse status (savepoint)
        2. Increment the case ledger (non-fatal on failure)
        3. Commit
        4. Notify the payer (best effort)
        """
        try:
            contribution = self.get_contribution(contribution_id)
            record = self.stage_approval(contribution, admin_id, admin_comment)
        except DomainException:
            self.db.rollback()
            record_moderation("approve", succeeded=False)
            raise

        self.ledger.apply(contribution.case_id, Decimal(str(contribution.amount)))
        commit_or_raise(self.db, f"approval of contribution {contribution_id}")
        record_moderation("approve", succeeded=True)

        logging.info(
            "Contribution approved",
            extra={"contribution_id": contribution_id, "admin_id": admin_id, "case_id": contribution.case_id},
        )
        await self.dispatcher.contribution_approved(contribution)
        return record

    async def reject(
        self,
        contribution_id: str,
        admin_id: str,
        rejection_reason: Optional[str],
        admin_comment: Optional[str] = None,
    ) -> ContributionApprovalStatus:
        """Reject one pending contribution; a reason is mandatory"""
        reason = parse_rejection_reason(rejection_reason)
        try:
            contribution = self.get_contribution(contribution_id)
            record = self.stage_rejection(contribution, admin_id, reason, admin_comment)
        except DomainException:
            self.db.rollback()
            record_moderation("reject", succeeded=False)
            raise

        commit_or_raise(self.db, f"rejection of contribution {contribution_id}")
        record_moderation("reject", succeeded=True)

        logging.info(
            "Contribution rejected",
            extra={"contribution_id": contribution_id, "admin_id": admin_id, "reason": reason.value},
        )
        await self.dispatcher.contribution_rejected(contribution, reason.value)
        return record

    async def set_status(
        self,
        contribution_id: str,
        status: Optional[str],
        admin_id: str,
        rejection_reason: Optional[str] = None,
        admin_comment: Optional[str] = None,
    ) -> ContributionApprovalStatus:
        """Entry point of the single-item surface: `approved` or `rejected`"""
        if status == ApprovalState.APPROVED.value:
            return await self.approve(contribution_id, admin_id, admin_comment)
        if status == ApprovalState.REJECTED.value:
            return await self.reject(contribution_id, admin_id, rejection_reason, admin_comment)
        raise ValidationError('status must be either "approved" or "rejected"')
