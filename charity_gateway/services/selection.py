"""Selection resolver: turns a batch request into a pending-only working set"""

import logging
from typing import List

from sqlalchemy.orm import Session

from charity_gateway.domain.exceptions import NotFoundError, ValidationError
from charity_gateway.domain.models import ContributionStatus, SelectionRequest, SelectMode
from charity_gateway.domain.selection import apply_post_filters
from charity_gateway.infrastructure.database.models import Contribution
from charity_gateway.infrastructure.database.repositories import ContributionRepository
from charity_gateway.utils.date_utils import end_of_day, start_of_day


class SelectionResolver:
    """
    Resolve explicit ids, "all" or "searched" selections.

    Whatever the mode, only contributions still in `pending` are returned;
    approved or rejected items are never swept into a bulk action.
    """

    def __init__(self, db: Session):
        self.contributions = ContributionRepository(db)

    def resolve(self, selection: SelectionRequest) -> List[Contribution]:
        if selection.select_mode == SelectMode.ALL.value:
            candidates = self.contributions.list_pending()

        elif selection.select_mode == SelectMode.SEARCHED.value and selection.filters is not None:
            filters = selection.filters
            candidates = self.contributions.find_pending(
                created_from=start_of_day(filters.date_from),
                created_to=end_of_day(filters.date_to),
                amount_min=filters.amount_min,
                amount_max=filters.amount_max,
                payment_method=filters.payment_method,
            )
            candidates = apply_post_filters(candidates, filters)

        elif selection.ids is not None and len(selection.ids) > 0:
            candidates = self.contributions.get_many(list(dict.fromkeys(selection.ids)))
            if not candidates:
                raise NotFoundError("None of the requested contributions exist")

        elif selection.ids is not None:
            raise ValidationError("IDs array cannot be empty. Please select at least one contribution.")

        else:
            raise ValidationError("Either ids array (with at least one ID) or select_mode must be provided")

        eligible = [c for c in candidates if c.status == ContributionStatus.PENDING.value]
        skipped = len(candidates) - len(eligible)
        if skipped:
            logging.info(
                "Non-pending contributions excluded from batch selection",
                extra={"skipped": skipped, "select_mode": selection.select_mode},
            )

        if not eligible:
            raise ValidationError("No pending contributions found to process")
        return eligible
