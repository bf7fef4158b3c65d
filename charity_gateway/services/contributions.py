"""Contribution intake, access checks and the paginated listing search"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from charity_gateway.domain.approval import parse_payment_method, validate_amount
from charity_gateway.domain.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from charity_gateway.domain.models import CaseStatus, ContributionQuery, ContributionStats, ContributionStatus
from charity_gateway.domain.selection import matches_range, matches_search, paginate
from charity_gateway.infrastructure.database.models import Contribution, ContributionApprovalEvent
from charity_gateway.infrastructure.database.repositories import (
    ApprovalStatusRepository,
    CaseRepository,
    ContributionRepository,
)
from charity_gateway.infrastructure.observability.metrics import listing_fallback_counter
from charity_gateway.services.moderation import commit_or_raise
from charity_gateway.services.notifications import NotificationDispatcher
from charity_gateway.utils.date_utils import end_of_day, start_of_day

LISTING_STATUSES = {"all", *(s.value for s in ContributionStatus)}


def filter_in_memory(contributions: List[Contribution], criteria: ContributionQuery) -> List[Contribution]:
    """
    In-process twin of ContributionRepository.search.

    Applies the same predicates and ordering as the SQL path so a page served
    from here is identical to one served by the store.
    """
    created_from = start_of_day(criteria.date_from)
    created_to = end_of_day(criteria.date_to)

    def keep(c: Contribution) -> bool:
        if criteria.donor_id and c.donor_id != criteria.donor_id:
            return False
        if criteria.status and criteria.status != "all" and c.status != criteria.status:
            return False
        if criteria.case_id and c.case_id != criteria.case_id:
            return False
        if criteria.payment_method and c.payment_method != criteria.payment_method:
            return False
        if not matches_range(c.created_at, c.amount, created_from, created_to):
            return False
        return matches_search(c, criteria.search)

    sort_attr = criteria.sort_by if criteria.sort_by in ("created_at", "amount") else "created_at"
    return sorted(
        (c for c in contributions if keep(c)),
        key=lambda c: (getattr(c, sort_attr), c.id),
        reverse=criteria.sort_order != "asc",
    )


class ContributionService:
    """Donor submissions and read access for donors and admins"""

    def __init__(self, db: Session, dispatcher: Optional[NotificationDispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher
        self.contributions = ContributionRepository(db)
        self.cases = CaseRepository(db)
        self.approvals = ApprovalStatusRepository(db)

    async def submit(
        self,
        donor_id: str,
        case_id: str,
        amount,
        payment_method: Optional[str],
        message: Optional[str] = None,
        anonymous: bool = False,
        proof_of_payment: Optional[str] = None,
    ) -> Contribution:
        """Record a donor contribution as pending; the case must be published"""
        value = validate_amount(amount)
        method = parse_payment_method(payment_method)

        case = self.cases.get(case_id)
        if case is None:
            raise NotFoundError(f"Case {case_id} not found")
        if case.status != CaseStatus.PUBLISHED.value:
            raise ValidationError("Case is not published and cannot accept contributions")

        try:
            contribution = self.contributions.create(
                case_id=case_id,
                donor_id=donor_id,
                amount=value,
                payment_method=method.value,
                message=message,
                anonymous=anonymous,
                proof_of_payment=proof_of_payment,
            )
            contribution_id = contribution.id
        except SQLAlchemyError:
            self.db.rollback()
            raise
        commit_or_raise(self.db, "new contribution")

        logging.info(
            "Contribution submitted",
            extra={"contribution_id": contribution_id, "case_id": case_id, "amount": str(value)},
        )
        contribution = self.contributions.get(contribution_id)
        if self.dispatcher is not None:
            await self.dispatcher.contribution_pending(contribution)
        return contribution

    def get_visible(self, contribution_id: str, user_id: str, is_admin: bool) -> Contribution:
        contribution = self.contributions.get(contribution_id)
        if contribution is None:
            raise NotFoundError(f"Contribution {contribution_id} not found")
        if not is_admin and contribution.donor_id != user_id:
            raise PermissionDeniedError("You can only view your own contributions")
        return contribution

    def approval_history(self, contribution: Contribution) -> List[ContributionApprovalEvent]:
        return self.approvals.list_events(contribution.id)

    def search(self, criteria: ContributionQuery, max_page_size: int = 100) -> Tuple[List[Contribution], int, ContributionStats]:
        """
        Paginated search.

        The store applies the structured filters and ordering. Without a text
        term it also pages and counts; with one, the sorted rows are matched
        with matches_search so case folding is the same on every backend. When
        the store cannot answer, the visible rows are filtered in process.

        Returns:
            (page_items, total_matching, stats)
        """
        if criteria.page < 1:
            raise ValidationError("Page must be greater than 0")
        if criteria.limit < 1 or criteria.limit > max_page_size:
            raise ValidationError(f"Limit must be between 1 and {max_page_size}")
        if criteria.status and criteria.status not in LISTING_STATUSES:
            raise ValidationError(f"Invalid status filter: {criteria.status}")

        try:
            if criteria.search and criteria.search.strip():
                matching = [c for c in self.contributions.search_all(criteria) if matches_search(c, criteria.search)]
                items, total = paginate(matching, criteria.page, criteria.limit)
            else:
                items = self.contributions.search(criteria)
                total = self.contributions.count(criteria)
        except SQLAlchemyError as e:
            self.db.rollback()
            listing_fallback_counter.inc()
            logging.error(f"Error searching contributions, using in-process fallback: {e}")
            matching = filter_in_memory(self.contributions.list_visible(criteria.donor_id), criteria)
            items, total = paginate(matching, criteria.page, criteria.limit)

        try:
            stats = self.contributions.stats(criteria.donor_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Error calculating contribution stats: {e}")
            stats = ContributionStats()
        return items, total, stats
