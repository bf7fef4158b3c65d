"""Unit tests for contribution matching rules"""

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from charity_gateway.domain.models import SelectionFilters
from charity_gateway.domain.selection import (
    apply_post_filters,
    matches_donor_name,
    matches_range,
    matches_search,
    paginate,
    payer_full_name,
)
from charity_gateway.utils.date_utils import end_of_day, start_of_day


def make_item(title_en="Clean Water", title_ar="مياه نظيفة", first="Alice", last="Smith", email="alice@example.com"):
    return SimpleNamespace(
        case=SimpleNamespace(title_en=title_en, title_ar=title_ar),
        donor=SimpleNamespace(first_name=first, last_name=last, email=email),
    )


def test_search_matches_either_title_language():
    item = make_item()
    assert matches_search(item, "water")
    assert matches_search(item, "نظيفة")


def test_search_matches_payer_identity_case_insensitively():
    item = make_item()
    assert matches_search(item, "SMITH")
    assert matches_search(item, "alice@")
    assert not matches_search(item, "omar")


def test_blank_search_matches_everything():
    assert matches_search(make_item(), None)
    assert matches_search(make_item(), "   ")


def test_search_tolerates_missing_case_and_payer():
    item = SimpleNamespace(case=None, donor=None)
    assert not matches_search(item, "water")
    assert payer_full_name(item) == ""


def test_donor_name_matches_full_name():
    item = make_item()
    assert matches_donor_name(item, "alice smi")
    assert not matches_donor_name(item, "smith alice")


def test_date_window_is_inclusive_of_whole_days():
    created_from = start_of_day(date(2024, 3, 1))
    created_to = end_of_day(date(2024, 3, 1))
    assert matches_range(datetime(2024, 3, 1, 0, 0), Decimal("1"), created_from, created_to)
    assert matches_range(datetime(2024, 3, 1, 23, 59, 59), Decimal("1"), created_from, created_to)
    assert not matches_range(datetime(2024, 3, 2, 0, 0), Decimal("1"), created_from, created_to)


def test_aware_timestamps_are_compared_in_utc():
    created_to = end_of_day(date(2024, 3, 1))
    aware = datetime(2024, 3, 2, 1, 0, tzinfo=timezone.utc)
    assert not matches_range(aware, Decimal("1"), created_to=created_to)


def test_amount_range():
    assert matches_range(datetime(2024, 1, 1), Decimal("100"), amount_min=Decimal("100"), amount_max=Decimal("200"))
    assert not matches_range(datetime(2024, 1, 1), Decimal("99.99"), amount_min=Decimal("100"))
    assert not matches_range(datetime(2024, 1, 1), Decimal("200.01"), amount_max=Decimal("200"))


def test_post_filters_combine_search_and_donor_name():
    alice = make_item()
    omar = make_item(title_en="School Supplies", first="Omar", last="Haddad", email="omar@example.com")
    filters = SelectionFilters(search="example.com", donor_name="omar")
    assert apply_post_filters([alice, omar], filters) == [omar]
    assert apply_post_filters([alice, omar], None) == [alice, omar]


def test_paginate_slices_and_reports_total():
    items = list(range(25))
    page, total = paginate(items, 3, 10)
    assert page == [20, 21, 22, 23, 24]
    assert total == 25
    assert paginate(items, 4, 10) == ([], 25)
