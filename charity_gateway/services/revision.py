"""Donor revision cycle: resubmission after rejection, or acknowledgement"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from charity_gateway.config import settings
from charity_gateway.domain.approval import check_acknowledgement, check_resubmission, require_reply
from charity_gateway.domain.exceptions import DomainException, NotFoundError, PermissionDeniedError, ValidationError
from charity_gateway.domain.models import ApprovalEventKind, ApprovalState, CaseStatus, ContributionStatus
from charity_gateway.infrastructure.database.models import Contribution, ContributionApprovalStatus
from charity_gateway.infrastructure.database.repositories import UserRepository
from charity_gateway.infrastructure.observability.metrics import record_moderation
from charity_gateway.services.moderation import ModerationService, commit_or_raise
from charity_gateway.services.notifications import NotificationDispatcher
from charity_gateway.utils.date_utils import utcnow


class DonorRevisionService:
    """Lets the donor answer a rejection, bounded by max_resubmissions"""

    def __init__(self, db: Session, dispatcher: NotificationDispatcher, max_resubmissions: int | None = None):
        self.db = db
        self.dispatcher = dispatcher
        self.max_resubmissions = settings.max_resubmissions if max_resubmissions is None else max_resubmissions
        self.moderation = ModerationService(db, dispatcher)
        self.users = UserRepository(db)

    def _owned_contribution(self, contribution_id: str, donor_id: str) -> Contribution:
        contribution = self.moderation.get_contribution(contribution_id)
        if contribution.donor_id != donor_id:
            raise PermissionDeniedError("You can only revise your own contributions")
        return contribution

    @staticmethod
    def _current_state(contribution: Contribution) -> tuple:
        record = contribution.approval_status
        if record is None:
            return None, 0
        return record.status, record.resubmission_count or 0

    async def resubmit(
        self,
        contribution_id: str,
        donor_id: str,
        donor_reply: Optional[str],
        payment_proof_url: Optional[str] = None,
    ) -> ContributionApprovalStatus:
        """
        Put a rejected contribution back into review.

        The existing approval record is updated in place: status returns to
        pending, the reply is stored and the resubmission counter grows by one.
        A new payment proof, if given, replaces the old one.
        """
        reply = require_reply(donor_reply)
        try:
            contribution = self._owned_contribution(contribution_id, donor_id)
            state, count = self._current_state(contribution)
            check_resubmission(state, count, self.max_resubmissions)

            if contribution.case is None:
                raise NotFoundError(f"Case {contribution.case_id} not found")
            if contribution.case.status != CaseStatus.PUBLISHED.value:
                raise ValidationError("Case is not published and cannot accept contributions")

            record_fields = {
                "donor_reply": reply,
                "donor_reply_date": utcnow(),
                "resubmission_count": count + 1,
            }
            contribution_fields = {}
            if payment_proof_url:
                record_fields["payment_proof_url"] = payment_proof_url
                contribution_fields["proof_of_payment"] = payment_proof_url

            record = self.moderation.write_transition(
                contribution,
                ApprovalState.PENDING,
                ApprovalEventKind.RESUBMITTED,
                donor_id,
                ContributionStatus.REJECTED,
                contribution_fields=contribution_fields,
                **record_fields,
            )
        except DomainException:
            self.db.rollback()
            record_moderation("resubmit", succeeded=False)
            raise

        commit_or_raise(self.db, f"resubmission of contribution {contribution_id}")
        record_moderation("resubmit", succeeded=True)
        logging.info(
            "Contribution resubmitted",
            extra={"contribution_id": contribution_id, "resubmission_count": record.resubmission_count},
        )

        await self.dispatcher.contribution_revised(contribution, self.users.list_admin_ids(), reply)
        return record

    async def acknowledge(
        self, contribution_id: str, donor_id: str, donor_reply: Optional[str]
    ) -> ContributionApprovalStatus:
        """Accept a rejection; `acknowledged` is terminal"""
        reply = require_reply(donor_reply)
        try:
            contribution = self._owned_contribution(contribution_id, donor_id)
            state, _ = self._current_state(contribution)
            check_acknowledgement(state)

            record = self.moderation.write_transition(
                contribution,
                ApprovalState.ACKNOWLEDGED,
                ApprovalEventKind.ACKNOWLEDGED,
                donor_id,
                ContributionStatus.REJECTED,
                donor_reply=reply,
                donor_reply_date=utcnow(),
            )
        except DomainException:
            self.db.rollback()
            record_moderation("acknowledge", succeeded=False)
            raise

        commit_or_raise(self.db, f"acknowledgement of contribution {contribution_id}")
        record_moderation("acknowledge", succeeded=True)
        logging.info("Contribution rejection acknowledged", extra={"contribution_id": contribution_id})
        return record
