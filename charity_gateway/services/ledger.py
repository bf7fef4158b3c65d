"""Case ledger: applies approved amounts to each case's running total"""

import logging
from decimal import Decimal
from typing import Dict, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from charity_gateway.domain.exceptions import NotFoundError, StoreError
from charity_gateway.infrastructure.database.repositories import CaseRepository, ContributionRepository
from charity_gateway.infrastructure.observability.metrics import ledger_update_failure_counter


class CaseLedger:
    """
    Additive ledger updates for cases.

    Updates are best-effort: approval status is authoritative, and a skipped
    increment is repaired by `reconcile`, which re-sums approved contributions.
    """

    def __init__(self, db: Session):
        self.db = db
        self.cases = CaseRepository(db)
        self.contributions = ContributionRepository(db)

    def apply(self, case_id: str, delta: Decimal) -> bool:
        """Atomically add delta to the case total; returns False when the update was skipped"""
        try:
            with self.db.begin_nested():
                matched = self.cases.increment_amount(case_id, delta)
        except SQLAlchemyError as e:
            ledger_update_failure_counter.inc()
            logging.warning(
                f"Error updating case amount: {e}",
                extra={"case_id": case_id, "delta": str(delta)},
            )
            return False

        if matched == 0:
            ledger_update_failure_counter.inc()
            logging.warning("Case not found for ledger update", extra={"case_id": case_id, "delta": str(delta)})
            return False
        return True

    def apply_many(self, increments: Dict[str, Decimal]) -> Dict[str, bool]:
        """One increment per distinct case"""
        return {case_id: self.apply(case_id, delta) for case_id, delta in increments.items()}

    def reconcile(self, case_id: str) -> Tuple[Decimal, Decimal]:
        """
        Recompute a case total from its approved contributions.

        Returns:
            (previous_amount, reconciled_amount)
        """
        case = self.cases.get(case_id)
        if case is None:
            raise NotFoundError(f"Case {case_id} not found")

        previous = Decimal(str(case.current_amount or 0))
        total = self.contributions.sum_approved(case_id)
        try:
            self.cases.set_amount(case_id, total)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to reconcile case {case_id}: {e}") from e

        if previous != total:
            logging.warning(
                "Case ledger drift corrected",
                extra={"case_id": case_id, "previous_amount": str(previous), "reconciled_amount": str(total)},
            )
        return previous, total
