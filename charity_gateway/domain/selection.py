"""Contribution matching rules shared by batch selection and listing search.

Free-text matching always runs here, never in SQL, so case folding does not
depend on the database collation. The structured predicates back the
in-process fallback of the listing search and must stay equivalent to the
SQL filters built in the repositories.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple, TypeVar

from charity_gateway.domain.models import SelectionFilters
from charity_gateway.utils.date_utils import as_naive_utc

T = TypeVar("T")


def payer_full_name(contribution) -> str:
    donor = getattr(contribution, "donor", None)
    if donor is None:
        return ""
    return f"{donor.first_name or ''} {donor.last_name or ''}".strip()


def search_fields(contribution) -> List[str]:
    """Text a free-text search looks at: case titles and payer identity"""
    fields = []
    case = getattr(contribution, "case", None)
    if case is not None:
        fields.extend([case.title_en or "", case.title_ar or ""])
    donor = getattr(contribution, "donor", None)
    if donor is not None:
        fields.extend([donor.first_name or "", donor.last_name or "", donor.email or ""])
    return fields


def matches_search(contribution, term: Optional[str]) -> bool:
    """Case-insensitive substring match over case titles and payer fields"""
    if not term or not term.strip():
        return True
    needle = term.strip().lower()
    return any(needle in value.lower() for value in search_fields(contribution))


def matches_donor_name(contribution, name: Optional[str]) -> bool:
    if not name or not name.strip():
        return True
    return name.strip().lower() in payer_full_name(contribution).lower()


def matches_range(
    created_at: datetime,
    amount: Decimal,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    amount_min: Optional[Decimal] = None,
    amount_max: Optional[Decimal] = None,
) -> bool:
    """Date window (inclusive) and amount range checks"""
    created = as_naive_utc(created_at)
    if created_from is not None and created < created_from:
        return False
    if created_to is not None and created > created_to:
        return False
    if amount_min is not None and Decimal(amount) < amount_min:
        return False
    if amount_max is not None and Decimal(amount) > amount_max:
        return False
    return True


def apply_post_filters(contributions: Iterable[T], filters: Optional[SelectionFilters]) -> List[T]:
    """
    Fine filters that run after the database-level query.

    Substring matching over joined case/payer fields is applied in memory on
    the already narrowed candidate set.
    """
    items = list(contributions)
    if filters is None:
        return items
    return [
        c for c in items
        if matches_search(c, filters.search) and matches_donor_name(c, filters.donor_name)
    ]


def paginate(items: List[T], page: int, limit: int) -> Tuple[List[T], int]:
    """Slice one page (1-based) out of an already filtered list; returns (page_items, total)"""
    offset = (page - 1) * limit
    return items[offset:offset + limit], len(items)
