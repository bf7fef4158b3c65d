"""Data access layer for contributions, approval records and cases"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from charity_gateway.domain.models import ContributionQuery, ContributionStats, ContributionStatus
from charity_gateway.infrastructure.database.models import (
    AdminUserRole,
    Case,
    Contribution,
    ContributionApprovalEvent,
    ContributionApprovalStatus,
    User,
)
from charity_gateway.utils.date_utils import end_of_day, start_of_day, utcnow

ADMIN_ROLE_NAMES = ("admin", "super_admin")
SORTABLE_COLUMNS = {"created_at": Contribution.created_at, "amount": Contribution.amount}


def _with_joins(query):
    return query.options(
        joinedload(Contribution.case),
        joinedload(Contribution.donor),
        joinedload(Contribution.approval_status),
    )


class ContributionRepository:
    """Repository for contributions"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        case_id: str,
        donor_id: Optional[str],
        amount: Decimal,
        payment_method: str,
        message: Optional[str] = None,
        anonymous: bool = False,
        proof_of_payment: Optional[str] = None,
    ) -> Contribution:
        """Persist a new pending contribution"""
        contribution = Contribution(
            case_id=case_id,
            donor_id=donor_id,
            amount=amount,
            payment_method=payment_method,
            message=message,
            anonymous=anonymous,
            proof_of_payment=proof_of_payment,
            status=ContributionStatus.PENDING.value,
        )
        self.db.add(contribution)
        self.db.flush()
        return contribution

    def get(self, contribution_id: str) -> Optional[Contribution]:
        """Fetch one contribution with case, payer and approval record"""
        return _with_joins(self.db.query(Contribution)).filter(Contribution.id == contribution_id).first()

    def get_many(self, ids: List[str]) -> List[Contribution]:
        """Fetch contributions by id, newest first"""
        return (
            _with_joins(self.db.query(Contribution))
            .filter(Contribution.id.in_(ids))
            .order_by(Contribution.created_at.desc(), Contribution.id.desc())
            .all()
        )

    def list_pending(self) -> List[Contribution]:
        """Every pending contribution in ascending id order"""
        return (
            _with_joins(self.db.query(Contribution))
            .filter(Contribution.status == ContributionStatus.PENDING.value)
            .order_by(Contribution.id.asc())
            .all()
        )

    def find_pending(
        self,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        amount_min: Optional[Decimal] = None,
        amount_max: Optional[Decimal] = None,
        payment_method: Optional[str] = None,
    ) -> List[Contribution]:
        """Broad database-level filter for "searched" batch selections, newest first"""
        query = _with_joins(self.db.query(Contribution)).filter(
            Contribution.status == ContributionStatus.PENDING.value
        )
        if created_from is not None:
            query = query.filter(Contribution.created_at >= created_from)
        if created_to is not None:
            query = query.filter(Contribution.created_at <= created_to)
        if amount_min is not None:
            query = query.filter(Contribution.amount >= amount_min)
        if amount_max is not None:
            query = query.filter(Contribution.amount <= amount_max)
        if payment_method:
            query = query.filter(Contribution.payment_method == payment_method)
        return query.order_by(Contribution.created_at.desc(), Contribution.id.desc()).all()

    def _search_query(self, criteria: ContributionQuery):
        """Structured listing filters; the free-text term is matched in process"""
        query = self.db.query(Contribution)
        if criteria.donor_id:
            query = query.filter(Contribution.donor_id == criteria.donor_id)
        if criteria.status and criteria.status != "all":
            query = query.filter(Contribution.status == criteria.status)
        if criteria.case_id:
            query = query.filter(Contribution.case_id == criteria.case_id)
        if criteria.payment_method:
            query = query.filter(Contribution.payment_method == criteria.payment_method)
        if criteria.date_from:
            query = query.filter(Contribution.created_at >= start_of_day(criteria.date_from))
        if criteria.date_to:
            query = query.filter(Contribution.created_at <= end_of_day(criteria.date_to))
        return query

    def _sorted_search(self, criteria: ContributionQuery):
        column = SORTABLE_COLUMNS.get(criteria.sort_by, Contribution.created_at)
        if criteria.sort_order == "asc":
            ordering = (column.asc(), Contribution.id.asc())
        else:
            ordering = (column.desc(), Contribution.id.desc())
        return _with_joins(self._search_query(criteria)).order_by(*ordering)

    def search(self, criteria: ContributionQuery) -> List[Contribution]:
        """One filtered, sorted page of contributions"""
        return self._sorted_search(criteria).offset(criteria.offset).limit(criteria.limit).all()

    def search_all(self, criteria: ContributionQuery) -> List[Contribution]:
        """Every row matching the structured filters, in page order"""
        return self._sorted_search(criteria).all()

    def count(self, criteria: ContributionQuery) -> int:
        return self._search_query(criteria).with_entities(func.count(Contribution.id)).scalar() or 0

    def transition_status(self, contribution_id: str, expected: str, status: str) -> int:
        """Conditional `status = new WHERE status = expected`; 0 means another writer got there first"""
        result = self.db.execute(
            update(Contribution)
            .where(Contribution.id == contribution_id, Contribution.status == expected)
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def list_visible(self, donor_id: Optional[str] = None) -> List[Contribution]:
        """All contributions a caller may see; input of the in-process search fallback"""
        query = _with_joins(self.db.query(Contribution))
        if donor_id:
            query = query.filter(Contribution.donor_id == donor_id)
        return query.all()

    def stats(self, donor_id: Optional[str] = None) -> ContributionStats:
        """Counts per coarse status plus the approved total"""
        query = self.db.query(
            Contribution.status,
            func.count(Contribution.id),
            func.coalesce(func.sum(Contribution.amount), 0),
        )
        if donor_id:
            query = query.filter(Contribution.donor_id == donor_id)
        stats = ContributionStats()
        for status, count, amount in query.group_by(Contribution.status).all():
            if status == ContributionStatus.APPROVED.value:
                stats.approved = count
                stats.total_amount = Decimal(str(amount))
            elif status == ContributionStatus.REJECTED.value:
                stats.rejected = count
            else:
                stats.pending += count
        stats.total = stats.approved + stats.rejected + stats.pending
        return stats

    def sum_approved(self, case_id: str) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(Contribution.amount), 0))
            .filter(Contribution.case_id == case_id)
            .filter(Contribution.status == ContributionStatus.APPROVED.value)
            .scalar()
        )
        return Decimal(str(total))


class ApprovalStatusRepository:
    """Repository for the latest approval record and its event history"""

    def __init__(self, db: Session):
        self.db = db

    def add_event(self, record: ContributionApprovalStatus, kind: str, actor_id: Optional[str]) -> ContributionApprovalEvent:
        """Append a history entry that snapshots the record after a transition"""
        event = ContributionApprovalEvent(
            contribution_id=record.contribution_id,
            kind=kind,
            status=record.status,
            actor_id=actor_id,
            rejection_reason=record.rejection_reason,
            comment=record.donor_reply if kind in ("resubmitted", "acknowledged") else record.admin_comment,
            resubmission_count=record.resubmission_count,
            created_at=utcnow(),
        )
        self.db.add(event)
        return event

    def list_events(self, contribution_id: str) -> List[ContributionApprovalEvent]:
        return (
            self.db.query(ContributionApprovalEvent)
            .filter(ContributionApprovalEvent.contribution_id == contribution_id)
            .order_by(ContributionApprovalEvent.created_at.asc(), ContributionApprovalEvent.id.asc())
            .all()
        )


class CaseRepository:
    """Repository for cases and their running totals"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, case_id: str) -> Optional[Case]:
        return self.db.query(Case).filter(Case.id == case_id).first()

    def increment_amount(self, case_id: str, delta: Decimal) -> int:
        """Atomic `current_amount = current_amount + delta`; returns matched rows"""
        result = self.db.execute(
            update(Case)
            .where(Case.id == case_id)
            .values(current_amount=Case.current_amount + delta, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def set_amount(self, case_id: str, amount: Decimal) -> int:
        result = self.db.execute(
            update(Case)
            .where(Case.id == case_id)
            .values(current_amount=amount, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount


class UserRepository:
    """Repository for users and the admin capability check"""

    def __init__(self, db: Session):
        self.db = db

    def is_admin(self, user_id: str) -> bool:
        return (
            self.db.query(AdminUserRole.id)
            .filter(AdminUserRole.user_id == user_id)
            .filter(AdminUserRole.is_active.is_(True))
            .filter(AdminUserRole.role_name.in_(ADMIN_ROLE_NAMES))
            .first()
            is not None
        )

    def list_admin_ids(self) -> List[str]:
        rows = (
            self.db.query(AdminUserRole.user_id)
            .filter(AdminUserRole.is_active.is_(True))
            .filter(AdminUserRole.role_name.in_(ADMIN_ROLE_NAMES))
            .distinct()
            .all()
        )
        return [row[0] for row in rows]
