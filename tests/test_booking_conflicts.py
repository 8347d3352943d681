from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import pytest

from rental_lifecycle.domain.booking_conflicts import (
    DateRange,
    find_conflicts,
    has_conflict,
    ranges_overlap,
    validate_range,
)
from rental_lifecycle.errors import InvalidRange


@dataclass
class Slot:
    start_date: date
    end_date: date
    status: str = "PENDING"


def _r(a: str, b: str) -> DateRange:
    return validate_range(a, b)


def test_overlap_is_half_open():
    assert ranges_overlap(date(2025, 3, 1), date(2025, 3, 10), date(2025, 3, 9), date(2025, 3, 12))
    assert not ranges_overlap(date(2025, 3, 1), date(2025, 3, 10), date(2025, 3, 10), date(2025, 3, 12))
    assert not ranges_overlap(date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 1), date(2025, 3, 10))


def test_abutting_bookings_do_not_conflict():
    existing = [Slot(date(2025, 3, 1), date(2025, 3, 10), "CONFIRMED")]
    assert not has_conflict(_r("2025-03-10", "2025-03-20"), existing)
    assert not has_conflict(_r("2025-02-20", "2025-03-01"), existing)


def test_containment_and_partial_overlap_conflict():
    existing = [Slot(date(2025, 3, 1), date(2025, 3, 31))]
    assert has_conflict(_r("2025-03-05", "2025-03-06"), existing)
    assert has_conflict(_r("2025-02-15", "2025-03-02"), existing)
    assert has_conflict(_r("2025-02-01", "2025-05-01"), existing)


def test_cancelled_and_completed_never_block():
    existing = [
        Slot(date(2025, 3, 1), date(2025, 3, 31), "CANCELLED"),
        Slot(date(2025, 3, 1), date(2025, 3, 31), "COMPLETED"),
    ]
    assert not has_conflict(_r("2025-03-05", "2025-03-06"), existing)


def test_find_conflicts_returns_the_offending_rows():
    a = Slot(date(2025, 3, 1), date(2025, 3, 5))
    b = Slot(date(2025, 3, 5), date(2025, 3, 9), "CONFIRMED")
    c = Slot(date(2025, 4, 1), date(2025, 4, 9))
    assert find_conflicts(_r("2025-03-04", "2025-03-06"), [a, b, c]) == [a, b]


@pytest.mark.parametrize(
    "start,end",
    [
        ("2025-03-10", "2025-03-10"),
        ("2025-03-11", "2025-03-10"),
        (None, "2025-03-10"),
        ("2025-03-10", "not-a-date"),
    ],
)
def test_invalid_ranges_rejected(start, end):
    with pytest.raises(InvalidRange):
        validate_range(start, end)


def test_date_range_counts_nights():
    assert _r("2025-03-01", "2025-03-31").nights == 30


def test_status_case_does_not_hide_a_conflict():
    pending = Slot(date(2025, 3, 1), date(2025, 3, 10), "pending")
    confirmed = Slot(date(2025, 3, 20), date(2025, 3, 25), " Confirmed ")
    cancelled = Slot(date(2025, 3, 1), date(2025, 3, 31), "cancelled")

    assert find_conflicts(_r("2025-03-02", "2025-03-05"), [pending, cancelled]) == [pending]
    assert find_conflicts(_r("2025-03-22", "2025-03-23"), [confirmed, cancelled]) == [confirmed]
